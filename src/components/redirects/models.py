"""
Redirects component input/output models.

RedirectRule is the single value type the whole package passes around.
Construction validates the shape; normalization happens at the store
boundary (see ``clean_rules``).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

WILDCARD = "*"

# --- Validation Error ---


@dataclass(frozen=True)
class RedirectValidationError:
    """Redirect validation error."""

    code: str
    message: str
    field: str | None = None


class InvalidRuleError(ValueError):
    """Raised when a RedirectRule is constructed from invalid values."""

    def __init__(self, errors: list[RedirectValidationError]) -> None:
        self.errors = errors
        super().__init__("; ".join(e.message for e in errors))


# --- Rule Model ---


@dataclass(frozen=True)
class RedirectRule:
    """One redirect rule: source pattern, target template, status code."""

    source: str  # e.g., "/old/*"
    target: str  # e.g., "/new/$1" or "https://example.com/$1"
    status_code: int = 301

    def __post_init__(self) -> None:
        errors: list[RedirectValidationError] = []
        if not self.source:
            errors.append(
                RedirectValidationError(
                    code="source_required",
                    message="Source path is required",
                    field="from",
                )
            )
        elif not self.source.startswith("/"):
            errors.append(
                RedirectValidationError(
                    code="source_must_start_with_slash",
                    message="Source path must start with /",
                    field="from",
                )
            )
        if not self.target:
            errors.append(
                RedirectValidationError(
                    code="target_required",
                    message="Target is required",
                    field="to",
                )
            )
        if errors:
            raise InvalidRuleError(errors)

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD in self.source

    def to_dict(self) -> dict[str, Any]:
        """Interchange representation."""
        return {"from": self.source, "to": self.target, "type": self.status_code}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RedirectRule:
        """Build from an interchange mapping without normalizing it."""
        return cls(
            source=str(data["from"]),
            target=str(data["to"]),
            status_code=int(data["type"]),
        )


@dataclass(frozen=True)
class RuleSnapshot:
    """Stored rule collection together with its write version."""

    rules: tuple[RedirectRule, ...] = ()
    version: int = 0


@dataclass(frozen=True)
class RuleChange:
    """Result of adding a rule: the stored rule and whether it replaced one."""

    rule: RedirectRule
    replaced: bool


@dataclass(frozen=True)
class Resolution:
    """Outcome of a successful redirect resolution."""

    status_code: int
    target: str
    matched_from: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": self.status_code,
            "target": self.target,
            "matched_from": self.matched_from,
        }


# --- Input Models ---


@dataclass(frozen=True)
class ListRulesInput:
    """Input for listing all rules."""

    pass


@dataclass(frozen=True)
class AddRuleInput:
    """Input for adding or updating a rule."""

    source: str
    target: str
    status_code: int | None = None


@dataclass(frozen=True)
class DeleteRuleInput:
    """Input for deleting rules by source."""

    source: str


@dataclass(frozen=True)
class ReplaceRulesInput:
    """Input for replacing the whole collection (admin form save)."""

    entries: tuple[Any, ...]
    expected_version: int | None = None


@dataclass(frozen=True)
class ImportRulesInput:
    """Input for importing an interchange payload."""

    entries: tuple[Any, ...]


@dataclass(frozen=True)
class ExportRulesInput:
    """Input for exporting all rules."""

    pass


@dataclass(frozen=True)
class TestRedirectInput:
    """Input for a dry-run resolution."""

    __test__ = False  # not a pytest test class

    url: str


# --- Output Models ---


@dataclass(frozen=True)
class RuleListOutput:
    """Output containing the rule collection."""

    rules: tuple[RedirectRule, ...]
    version: int = 0
    errors: list[RedirectValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class RuleOperationOutput:
    """Output for add and delete operations."""

    rule: RedirectRule | None = None
    replaced: bool = False
    errors: list[RedirectValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class ResolveOutput:
    """Output for the dry-run resolve operation."""

    resolution: Resolution | None
    errors: list[RedirectValidationError] = field(default_factory=list)
    success: bool = True
