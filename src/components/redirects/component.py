"""
Redirects component - wildcard redirect rules.

Entry points wrap RedirectService for callers that work with input/output
models (the CLI). The HTTP layer talks to RedirectService directly.

Invariants:
- I1: Exact rules take priority over wildcard rules
- I2: First matching wildcard rule wins
- I3: Status code is one of the configured allowed codes
- I4: Source starts with exactly one slash, target is a path or safe URL
- I5: The request query string is preserved on the target
"""

from __future__ import annotations

from ._impl import RedirectConfig, RedirectService
from .models import (
    AddRuleInput,
    DeleteRuleInput,
    ExportRulesInput,
    ImportRulesInput,
    ListRulesInput,
    RedirectValidationError,
    ReplaceRulesInput,
    ResolveOutput,
    RuleListOutput,
    RuleOperationOutput,
    TestRedirectInput,
)
from .ports import RulesPort, RuleStorePort, StaleRulesError


def _build_config(rules: RulesPort | None) -> RedirectConfig:
    """Build redirect config from rules port."""
    if rules is None:
        return RedirectConfig()

    return RedirectConfig(
        enabled=rules.is_enabled(),
        default_status_code=rules.get_default_status_code(),
        allowed_status_codes=tuple(rules.get_allowed_status_codes()),
        excluded_path_prefixes=tuple(rules.get_excluded_path_prefixes()),
    )


def _create_service(store: RuleStorePort, rules: RulesPort | None) -> RedirectService:
    """Create redirect service from ports."""
    return RedirectService(store=store, config=_build_config(rules))


# --- Component Entry Points ---


def run_list(
    inp: ListRulesInput,
    *,
    store: RuleStorePort,
    rules: RulesPort | None = None,
) -> RuleListOutput:
    """List all rules in stored order."""
    snapshot = _create_service(store, rules).list_rules()
    return RuleListOutput(rules=snapshot.rules, version=snapshot.version)


def run_add(
    inp: AddRuleInput,
    *,
    store: RuleStorePort,
    rules: RulesPort | None = None,
) -> RuleOperationOutput:
    """
    Add a rule or update the rule with the same source.

    Args:
        inp: Source, target and optional status code.
        store: Rule store port.
        rules: Optional rules port for configuration.

    Returns:
        RuleOperationOutput with the stored rule or validation errors.
    """
    service = _create_service(store, rules)
    change, errors = service.add(inp.source, inp.target, inp.status_code)

    if change is None:
        return RuleOperationOutput(errors=errors, success=False)

    return RuleOperationOutput(rule=change.rule, replaced=change.replaced)


def run_delete(
    inp: DeleteRuleInput,
    *,
    store: RuleStorePort,
    rules: RulesPort | None = None,
) -> RuleOperationOutput:
    """Delete rules by source. Reports not_found when nothing was removed."""
    service = _create_service(store, rules)

    if not inp.source.strip():
        return RuleOperationOutput(
            errors=[
                RedirectValidationError(
                    code="source_required",
                    message="Source path is required",
                    field="from",
                )
            ],
            success=False,
        )

    if not service.delete(inp.source):
        return RuleOperationOutput(
            errors=[
                RedirectValidationError(
                    code="not_found",
                    message=f"Not found: {inp.source}",
                    field="from",
                )
            ],
            success=False,
        )

    return RuleOperationOutput()


def run_replace(
    inp: ReplaceRulesInput,
    *,
    store: RuleStorePort,
    rules: RulesPort | None = None,
) -> RuleListOutput:
    """Replace the whole collection. A stale version is reported, not raised."""
    service = _create_service(store, rules)

    try:
        snapshot = service.replace(inp.entries, expected_version=inp.expected_version)
    except StaleRulesError as e:
        current = service.list_rules()
        return RuleListOutput(
            rules=current.rules,
            version=current.version,
            errors=[RedirectValidationError(code="stale_version", message=str(e))],
            success=False,
        )

    return RuleListOutput(rules=snapshot.rules, version=snapshot.version)


def run_import(
    inp: ImportRulesInput,
    *,
    store: RuleStorePort,
    rules: RulesPort | None = None,
) -> RuleListOutput:
    """Import an interchange payload, replacing the stored rules."""
    snapshot = _create_service(store, rules).import_rules(inp.entries)
    return RuleListOutput(rules=snapshot.rules, version=snapshot.version)


def run_export(
    inp: ExportRulesInput,
    *,
    store: RuleStorePort,
    rules: RulesPort | None = None,
) -> RuleListOutput:
    """Export the stored rules."""
    exported = _create_service(store, rules).export_rules()
    return RuleListOutput(rules=tuple(exported))


def run_test(
    inp: TestRedirectInput,
    *,
    store: RuleStorePort,
    rules: RulesPort | None = None,
) -> ResolveOutput:
    """Dry-run a URL or path against the stored rules."""
    resolution = _create_service(store, rules).test(inp.url)
    return ResolveOutput(resolution=resolution)


def run(
    inp: (
        ListRulesInput
        | AddRuleInput
        | DeleteRuleInput
        | ReplaceRulesInput
        | ImportRulesInput
        | ExportRulesInput
        | TestRedirectInput
    ),
    *,
    store: RuleStorePort,
    rules: RulesPort | None = None,
) -> RuleListOutput | RuleOperationOutput | ResolveOutput:
    """
    Main entry point for the redirects component.

    Dispatches to appropriate handler based on input type.
    """
    if isinstance(inp, ListRulesInput):
        return run_list(inp, store=store, rules=rules)
    elif isinstance(inp, AddRuleInput):
        return run_add(inp, store=store, rules=rules)
    elif isinstance(inp, DeleteRuleInput):
        return run_delete(inp, store=store, rules=rules)
    elif isinstance(inp, ReplaceRulesInput):
        return run_replace(inp, store=store, rules=rules)
    elif isinstance(inp, ImportRulesInput):
        return run_import(inp, store=store, rules=rules)
    elif isinstance(inp, ExportRulesInput):
        return run_export(inp, store=store, rules=rules)
    elif isinstance(inp, TestRedirectInput):
        return run_test(inp, store=store, rules=rules)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
