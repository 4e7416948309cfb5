"""
In-memory rule store.

Same contract as SQLiteRuleStore; a process-local Lock guards the
read-modify-write in ``update``.
"""

from __future__ import annotations

from collections.abc import Iterable
from threading import Lock
from typing import Any

from src.components.redirects import (
    DEFAULT_CONFIG,
    RedirectConfig,
    RedirectRule,
    RuleSnapshot,
    RuleUpdate,
    StaleRulesError,
    clean_rules,
)


class InMemoryRuleStore:
    """Rule store kept in process memory."""

    def __init__(
        self,
        rules: Iterable[Any] = (),
        config: RedirectConfig | None = None,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        self._lock = Lock()
        self._snapshot = RuleSnapshot()
        initial = clean_rules(rules, self.config)
        if initial:
            self._snapshot = RuleSnapshot(rules=tuple(initial), version=1)

    def load(self) -> RuleSnapshot:
        with self._lock:
            return self._snapshot

    def get_rules(self) -> list[RedirectRule]:
        return list(self.load().rules)

    def save_rules(
        self,
        entries: Iterable[Any],
        expected_version: int | None = None,
    ) -> RuleSnapshot:
        rules = clean_rules(entries, self.config)
        with self._lock:
            version = self._snapshot.version
            if expected_version is not None and expected_version != version:
                raise StaleRulesError(expected_version, version)
            self._snapshot = RuleSnapshot(rules=tuple(rules), version=version + 1)
            return self._snapshot

    def update(self, fn: RuleUpdate) -> RuleSnapshot:
        with self._lock:
            result = fn(list(self._snapshot.rules))
            if result is None:
                return self._snapshot
            rules = clean_rules(result, self.config)
            self._snapshot = RuleSnapshot(rules=tuple(rules), version=self._snapshot.version + 1)
            return self._snapshot
