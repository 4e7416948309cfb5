"""
Redirects component port definitions.

The rule store replaces the whole collection on every write. Callers that
need read-modify-write go through ``update`` so the fetch, change and
persist happen inside one critical section.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, Protocol

from .models import RedirectRule, RuleSnapshot

RuleUpdate = Callable[[list[RedirectRule]], Iterable[Any] | None]


class RuleStorePort(Protocol):
    """Repository interface for the redirect rule collection."""

    def get_rules(self) -> list[RedirectRule]:
        """Get the ordered rule collection."""
        ...

    def load(self) -> RuleSnapshot:
        """Get the rule collection together with its version."""
        ...

    def save_rules(
        self,
        entries: Iterable[Any],
        expected_version: int | None = None,
    ) -> RuleSnapshot:
        """
        Replace the stored collection.

        Entries are cleaned (source normalized, target sanitized, status
        coerced) and invalid ones dropped before writing.

        Raises:
            StaleRulesError: If expected_version is given and differs from
                the stored version.
        """
        ...

    def update(self, fn: RuleUpdate) -> RuleSnapshot:
        """
        Apply ``fn`` to the current rules and persist its result atomically.

        If ``fn`` returns None nothing is written and the current snapshot
        is returned.
        """
        ...


class RulesPort(Protocol):
    """Port for redirect configuration."""

    def is_enabled(self) -> bool:
        """Check if redirects are enabled."""
        ...

    def get_default_status_code(self) -> int:
        """Get default HTTP status code for redirects."""
        ...

    def get_allowed_status_codes(self) -> tuple[int, ...]:
        """Get the accepted redirect status codes."""
        ...

    def get_excluded_path_prefixes(self) -> tuple[str, ...]:
        """Get request path prefixes that are never redirected."""
        ...


# --- Errors ---


class RuleStoreError(Exception):
    """Base class for rule store errors."""


class StaleRulesError(RuleStoreError):
    """Raised when a write is based on an outdated version of the rules."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Rules changed since version {expected} (now {actual})")
