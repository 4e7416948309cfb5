import json
import logging
import sqlite3
from collections.abc import Iterable
from datetime import UTC, datetime
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

logger = logging.getLogger(__name__)

RULES_OPTION_KEY = "_redirect_rules"


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def decode_rules(raw: str | None) -> list[RedirectRule]:
    """Decode a stored option value, skipping malformed entries."""
    if not raw:
        return []

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored redirect rules are not valid JSON; treating as empty")
        return []

    if not isinstance(data, list):
        return []

    rules: list[RedirectRule] = []
    for entry in data:
        try:
            rules.append(RedirectRule.from_dict(entry))
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed stored redirect rule: %r", entry)
    return rules


def encode_rules(rules: Iterable[RedirectRule]) -> str:
    return json.dumps([r.to_dict() for r in rules], ensure_ascii=False)


class SQLiteOptionStore:
    """Key-value option table with a write version per key."""

    def __init__(self, db_path: str, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    def _get_conn(self) -> sqlite3.Connection:
        # Autocommit mode: transactions are opened explicitly with BEGIN IMMEDIATE
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = dict_factory
        return conn

    def _read(self, conn: sqlite3.Connection, key: str) -> tuple[str | None, int]:
        row = conn.execute(
            "SELECT option_value, version FROM options WHERE option_key = ?", (key,)
        ).fetchone()
        if not row:
            return None, 0
        return row["option_value"], row["version"]

    def _write(self, conn: sqlite3.Connection, key: str, value: str, version: int) -> None:
        conn.execute(
            """
            INSERT INTO options (option_key, option_value, version, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(option_key) DO UPDATE SET
                option_value=excluded.option_value,
                version=excluded.version,
                updated_at=excluded.updated_at
        """,
            (key, value, version, datetime.now(UTC).isoformat()),
        )

    def get(self, key: str) -> tuple[str | None, int]:
        """Return (value, version); (None, 0) for a key never written."""
        conn = self._get_conn()
        try:
            return self._read(conn, key)
        finally:
            conn.close()


class SQLiteRuleStore(SQLiteOptionStore):
    """Redirect rule collection stored as one JSON option row."""

    def __init__(
        self,
        db_path: str,
        config: RedirectConfig | None = None,
        option_key: str = RULES_OPTION_KEY,
        timeout: float = 5.0,
    ):
        super().__init__(db_path, timeout=timeout)
        self.config = config or DEFAULT_CONFIG
        self.option_key = option_key

    def load(self) -> RuleSnapshot:
        raw, version = self.get(self.option_key)
        return RuleSnapshot(rules=tuple(decode_rules(raw)), version=version)

    def get_rules(self) -> list[RedirectRule]:
        return list(self.load().rules)

    def save_rules(
        self,
        entries: Iterable[Any],
        expected_version: int | None = None,
    ) -> RuleSnapshot:
        rules = clean_rules(entries, self.config)
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                _, version = self._read(conn, self.option_key)
                if expected_version is not None and expected_version != version:
                    raise StaleRulesError(expected_version, version)
                self._write(conn, self.option_key, encode_rules(rules), version + 1)
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            return RuleSnapshot(rules=tuple(rules), version=version + 1)
        finally:
            conn.close()

    def update(self, fn: RuleUpdate) -> RuleSnapshot:
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                raw, version = self._read(conn, self.option_key)
                current = decode_rules(raw)
                result = fn(list(current))
                if result is None:
                    conn.execute("ROLLBACK")
                    return RuleSnapshot(rules=tuple(current), version=version)
                rules = clean_rules(result, self.config)
                self._write(conn, self.option_key, encode_rules(rules), version + 1)
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            return RuleSnapshot(rules=tuple(rules), version=version + 1)
        finally:
            conn.close()
