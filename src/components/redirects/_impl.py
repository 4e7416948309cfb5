"""
RedirectService - wildcard redirect resolution and rule management.

Resolution pipeline (pure, no I/O):
    split_request -> RuleIndex.build / match -> apply_captures
    -> append_query_string

Key behaviors:
- Exact rules win over wildcard rules regardless of list order
- Among exact duplicates the last listed rule wins
- Among wildcard rules the first listed match wins
- Each ``*`` captures greedily; ``$1``..``$k`` in the target are replaced
- The request query string is appended verbatim to the target
- Rules are cleaned (source normalized, target sanitized, status coerced)
  at the store boundary, never by the resolver
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any
from urllib.parse import urlsplit

from .models import (
    WILDCARD,
    RedirectRule,
    RedirectValidationError,
    Resolution,
    RuleChange,
    RuleSnapshot,
)
from .ports import RuleStorePort

logger = logging.getLogger(__name__)

# --- Configuration ---

DEFAULT_STATUS_CODE = 301
ALLOWED_STATUS_CODES = (301, 302, 303, 307, 308)


@dataclass(frozen=True)
class RedirectConfig:
    """Redirect configuration from rules."""

    enabled: bool = True
    default_status_code: int = DEFAULT_STATUS_CODE
    allowed_status_codes: tuple[int, ...] = ALLOWED_STATUS_CODES

    # Request paths under these prefixes are never redirected
    excluded_path_prefixes: tuple[str, ...] = ()


DEFAULT_CONFIG = RedirectConfig()

ALLOWED_TARGET_SCHEMES = frozenset({"http", "https", "ftp", "ftps", "mailto", "tel"})
NETLOC_SCHEMES = frozenset({"http", "https", "ftp", "ftps"})

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


# --- Rule Hygiene ---


def normalize_source(source: str) -> str:
    """Trim and force a single leading slash. Empty stays empty."""
    source = source.strip()
    if not source:
        return ""
    return "/" + source.lstrip("/")


def sanitize_target(target: str) -> str:
    """
    Clean a redirect target.

    Returns an empty string when the target is unusable: blank, unparsable,
    a scheme outside ALLOWED_TARGET_SCHEMES (javascript:, data:, ...), or a
    web URL without a host.
    """
    target = _CONTROL_CHARS.sub("", target.strip()).strip()
    if not target:
        return ""

    target = target.replace(" ", "%20")

    try:
        parsed = urlsplit(target)
    except ValueError:
        return ""

    scheme = parsed.scheme.lower()
    if scheme:
        if scheme not in ALLOWED_TARGET_SCHEMES:
            return ""
        if scheme in NETLOC_SCHEMES and not parsed.netloc:
            return ""
    elif target.startswith("//") and not parsed.netloc:
        return ""

    return target


def coerce_status_code(value: Any, config: RedirectConfig = DEFAULT_CONFIG) -> int:
    """Keep an allowed status code, fall back to the default otherwise."""
    try:
        code = int(value)
    except (TypeError, ValueError):
        return config.default_status_code

    if code not in config.allowed_status_codes:
        return config.default_status_code
    return code


def clean_rules(
    entries: Iterable[Any],
    config: RedirectConfig = DEFAULT_CONFIG,
) -> list[RedirectRule]:
    """
    Normalize a raw rule collection for storage.

    Accepts RedirectRule objects or interchange mappings. Entries that are
    not mappings, or whose source/target is empty after cleaning, are dropped.
    Order and duplicates are preserved.
    """
    clean: list[RedirectRule] = []

    for entry in entries:
        if isinstance(entry, RedirectRule):
            raw_from: Any = entry.source
            raw_to: Any = entry.target
            raw_type: Any = entry.status_code
        elif isinstance(entry, Mapping):
            raw_from = entry.get("from")
            raw_to = entry.get("to")
            raw_type = entry.get("type", config.default_status_code)
        else:
            logger.debug("Skipping non-mapping rule entry: %r", entry)
            continue

        source = normalize_source(str(raw_from)) if raw_from is not None else ""
        target = sanitize_target(str(raw_to)) if raw_to is not None else ""
        if not source or not target:
            logger.debug("Dropping invalid rule entry: %r", entry)
            continue

        clean.append(
            RedirectRule(
                source=source,
                target=target,
                status_code=coerce_status_code(raw_type, config),
            )
        )

    return clean


# --- Request Normalization ---


def split_request(url_or_path: str) -> tuple[str, str]:
    """
    Split a path or full URL into (path, query).

    The path always starts with exactly one slash. A bare path such as
    ``//old/x`` is a path, not a host. Unparsable input degrades to the
    root path with no query.
    """
    if url_or_path.startswith("/"):
        url_or_path = normalize_request_path(url_or_path)

    try:
        parts = urlsplit(url_or_path)
    except ValueError:
        return "/", ""

    return normalize_request_path(parts.path), parts.query


def normalize_request_path(path: str) -> str:
    """Collapse leading slashes to exactly one."""
    return "/" + path.lstrip("/")


# --- Pattern Matching ---


@lru_cache(maxsize=1024)
def compile_pattern(source: str) -> re.Pattern[str]:
    """Compile a wildcard source into an anchored pattern, one group per ``*``."""
    escaped = re.escape(source).replace(re.escape(WILDCARD), "(.*)")
    return re.compile(escaped, re.DOTALL)


@dataclass(frozen=True)
class RuleMatch:
    """A matched rule and the substrings captured by its wildcards."""

    rule: RedirectRule
    captures: tuple[str, ...] = ()


@dataclass(frozen=True)
class RuleIndex:
    """Exact lookup table plus wildcard rules in collection order."""

    exact: Mapping[str, RedirectRule]
    wildcards: tuple[RedirectRule, ...]

    @classmethod
    def build(cls, rules: Iterable[RedirectRule]) -> RuleIndex:
        exact: dict[str, RedirectRule] = {}
        wildcards: list[RedirectRule] = []
        for rule in rules:
            if rule.is_wildcard:
                wildcards.append(rule)
            else:
                # Later duplicates replace earlier ones
                exact[rule.source] = rule
        return cls(exact=exact, wildcards=tuple(wildcards))

    def match(self, path: str) -> RuleMatch | None:
        """Exact match first, then the first wildcard rule that matches."""
        rule = self.exact.get(path)
        if rule is not None:
            return RuleMatch(rule=rule)

        for rule in self.wildcards:
            found = compile_pattern(rule.source).fullmatch(path)
            if found is not None:
                return RuleMatch(rule=rule, captures=found.groups())

        return None


# --- Target Construction ---


def apply_captures(target: str, captures: Sequence[str]) -> str:
    """
    Replace ``$1``..``$k`` in target with the captured substrings.

    Single pass: captured values are never substituted again. At each
    ``$`` the lowest matching index wins, tokens above k stay literal.
    """
    if not captures or "$" not in target:
        return target

    tokens = [f"${n}" for n in range(1, len(captures) + 1)]
    out: list[str] = []
    i = 0

    while i < len(target):
        if target[i] != "$":
            out.append(target[i])
            i += 1
            continue

        for n, token in enumerate(tokens):
            if target.startswith(token, i):
                out.append(captures[n])
                i += len(token)
                break
        else:
            out.append("$")
            i += 1

    return "".join(out)


def append_query_string(target: str, query: str) -> str:
    """Append the request query with ``?`` or ``&`` depending on the target."""
    query = query.lstrip("?")
    if not query:
        return target

    separator = "&" if "?" in target else "?"
    return f"{target}{separator}{query}"


# --- Resolution ---


def resolve_redirect(request: str, rules: Sequence[RedirectRule]) -> Resolution | None:
    """
    Resolve one request string against a rule collection.

    Returns None when nothing matches.
    """
    if not rules:
        return None

    path, query = split_request(request)
    return resolve_path(path, query, rules)


def resolve_path(path: str, query: str, rules: Sequence[RedirectRule]) -> Resolution | None:
    """
    Resolve an already split request path and raw query.

    The path is matched as given apart from collapsing leading slashes; it
    is never parsed again, so ``?`` or ``#`` inside it stay part of the path.
    """
    if not rules:
        return None

    path = normalize_request_path(path)
    match = RuleIndex.build(rules).match(path)
    if match is None:
        return None

    rule = match.rule
    target = apply_captures(rule.target, match.captures) if match.captures else rule.target

    return Resolution(
        status_code=rule.status_code,
        target=append_query_string(target, query),
        matched_from=rule.source,
    )


def is_excluded_path(path: str, config: RedirectConfig = DEFAULT_CONFIG) -> bool:
    """Check whether a request path sits under an excluded prefix."""
    for prefix in config.excluded_path_prefixes:
        stripped = prefix.rstrip("/")
        if path == stripped or path.startswith(stripped + "/"):
            return True
    return False


# --- Validation ---


def validate_rule_input(
    source: str,
    target: str,
    status_code: int | None,
    config: RedirectConfig = DEFAULT_CONFIG,
) -> tuple[RedirectRule | None, list[RedirectValidationError]]:
    """Validate a single rule coming from an interactive surface."""
    errors: list[RedirectValidationError] = []

    norm_source = normalize_source(source)
    if not norm_source:
        errors.append(
            RedirectValidationError(
                code="source_required",
                message="Source path is required",
                field="from",
            )
        )

    if not target.strip():
        errors.append(
            RedirectValidationError(
                code="target_required",
                message="Target is required",
                field="to",
            )
        )
        norm_target = ""
    else:
        norm_target = sanitize_target(target)
        if not norm_target:
            errors.append(
                RedirectValidationError(
                    code="invalid_target",
                    message="Target must be a path or an http(s) URL",
                    field="to",
                )
            )

    if status_code is not None and status_code not in config.allowed_status_codes:
        allowed = ", ".join(str(c) for c in config.allowed_status_codes)
        errors.append(
            RedirectValidationError(
                code="invalid_status_code",
                message=f"Type must be one of {allowed}",
                field="type",
            )
        )

    if errors:
        return None, errors

    rule = RedirectRule(
        source=norm_source,
        target=norm_target,
        status_code=status_code if status_code is not None else config.default_status_code,
    )
    return rule, []


# --- Redirect Service ---


class RedirectService:
    """
    Redirect rule management on top of a rule store.

    Every mutation is a single ``store.update`` call so concurrent writers
    cannot drop each other's changes.
    """

    def __init__(
        self,
        store: RuleStorePort,
        config: RedirectConfig | None = None,
    ) -> None:
        self._store = store
        self._config = config or DEFAULT_CONFIG

    @property
    def config(self) -> RedirectConfig:
        return self._config

    def list_rules(self) -> RuleSnapshot:
        """Current rules and their version."""
        return self._store.load()

    def add(
        self,
        source: str,
        target: str,
        status_code: int | None = None,
    ) -> tuple[RuleChange | None, list[RedirectValidationError]]:
        """
        Add a rule, or replace the first rule with the same source.

        Returns:
            Tuple of (change, errors). Change is None if validation fails.
        """
        rule, errors = validate_rule_input(source, target, status_code, self._config)
        if rule is None:
            return None, errors

        replaced = False

        def apply(current: list[RedirectRule]) -> list[RedirectRule]:
            nonlocal replaced
            rules = list(current)
            for i, existing in enumerate(rules):
                if existing.source == rule.source:
                    rules[i] = rule
                    replaced = True
                    break
            else:
                rules.append(rule)
            return rules

        self._store.update(apply)
        logger.info(
            "%s redirect %s -> %s (%d)",
            "Updated" if replaced else "Added",
            rule.source,
            rule.target,
            rule.status_code,
        )
        return RuleChange(rule=rule, replaced=replaced), []

    def delete(self, source: str) -> bool:
        """Delete every rule with the given source. False if none existed."""
        norm_source = normalize_source(source)
        if not norm_source:
            return False

        removed = 0

        def apply(current: list[RedirectRule]) -> list[RedirectRule] | None:
            nonlocal removed
            kept = [r for r in current if r.source != norm_source]
            removed = len(current) - len(kept)
            return kept if removed else None

        self._store.update(apply)
        if removed:
            logger.info("Deleted %d redirect(s) for %s", removed, norm_source)
        return removed > 0

    def replace(
        self,
        entries: Iterable[Any],
        expected_version: int | None = None,
    ) -> RuleSnapshot:
        """Replace the whole collection (admin form save)."""
        snapshot = self._store.save_rules(entries, expected_version=expected_version)
        logger.info("Saved %d redirect(s) (version %d)", len(snapshot.rules), snapshot.version)
        return snapshot

    def import_rules(self, entries: Iterable[Any]) -> RuleSnapshot:
        """Replace the collection with an interchange payload."""
        return self.replace(entries)

    def export_rules(self) -> list[RedirectRule]:
        return self._store.get_rules()

    def test(self, url: str) -> Resolution | None:
        """Dry-run resolution against the stored rules."""
        return resolve_redirect(url, self._store.get_rules())


# --- Factory ---


def create_redirect_service(
    store: RuleStorePort,
    config: RedirectConfig | None = None,
) -> RedirectService:
    """Create a RedirectService."""
    return RedirectService(store=store, config=config)
