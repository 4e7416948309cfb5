"""
Redirects component - wildcard redirect rules and resolution.
"""

from ._impl import (
    ALLOWED_STATUS_CODES,
    DEFAULT_CONFIG,
    DEFAULT_STATUS_CODE,
    RedirectConfig,
    RedirectService,
    RuleIndex,
    RuleMatch,
    append_query_string,
    apply_captures,
    clean_rules,
    coerce_status_code,
    compile_pattern,
    create_redirect_service,
    is_excluded_path,
    normalize_request_path,
    normalize_source,
    resolve_path,
    resolve_redirect,
    sanitize_target,
    split_request,
    validate_rule_input,
)
from .component import (
    run,
    run_add,
    run_delete,
    run_export,
    run_import,
    run_list,
    run_replace,
    run_test,
)
from .models import (
    AddRuleInput,
    DeleteRuleInput,
    ExportRulesInput,
    ImportRulesInput,
    InvalidRuleError,
    ListRulesInput,
    RedirectRule,
    RedirectValidationError,
    ReplaceRulesInput,
    Resolution,
    ResolveOutput,
    RuleChange,
    RuleListOutput,
    RuleOperationOutput,
    RuleSnapshot,
    TestRedirectInput,
)
from .ports import RulesPort, RuleStoreError, RuleStorePort, RuleUpdate, StaleRulesError

__all__ = [
    # Entry points
    "run",
    "run_add",
    "run_delete",
    "run_export",
    "run_import",
    "run_list",
    "run_replace",
    "run_test",
    # Input models
    "AddRuleInput",
    "DeleteRuleInput",
    "ExportRulesInput",
    "ImportRulesInput",
    "ListRulesInput",
    "ReplaceRulesInput",
    "TestRedirectInput",
    # Output models
    "InvalidRuleError",
    "RedirectRule",
    "RedirectValidationError",
    "Resolution",
    "ResolveOutput",
    "RuleChange",
    "RuleListOutput",
    "RuleOperationOutput",
    "RuleSnapshot",
    # Ports
    "RuleStoreError",
    "RuleStorePort",
    "RuleUpdate",
    "RulesPort",
    "StaleRulesError",
    # _impl re-exports
    "ALLOWED_STATUS_CODES",
    "DEFAULT_CONFIG",
    "DEFAULT_STATUS_CODE",
    "RedirectConfig",
    "RedirectService",
    "RuleIndex",
    "RuleMatch",
    "append_query_string",
    "apply_captures",
    "clean_rules",
    "coerce_status_code",
    "compile_pattern",
    "create_redirect_service",
    "is_excluded_path",
    "normalize_request_path",
    "normalize_source",
    "resolve_path",
    "resolve_redirect",
    "sanitize_target",
    "split_request",
    "validate_rule_input",
]
