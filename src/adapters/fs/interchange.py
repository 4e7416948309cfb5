"""
Redirect rule interchange files.

Format: a JSON array of {"from", "to", "type"} objects, UTF-8, indented,
with slashes and non-ASCII characters left unescaped.
"""

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from src.components.redirects import RedirectRule


class InterchangeError(Exception):
    """Raised when an interchange file cannot be read, parsed or written."""


def dumps_rules(rules: Iterable[RedirectRule]) -> str:
    return json.dumps([r.to_dict() for r in rules], indent=4, ensure_ascii=False)


def loads_rules(text: str) -> list[Any]:
    """Parse an interchange payload. Entries are returned unvalidated."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InterchangeError(f"Invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise InterchangeError("Invalid JSON format (expected array)")
    return data


def write_rules_file(path: Path, rules: Iterable[RedirectRule]) -> None:
    payload = dumps_rules(rules)
    try:
        path.write_text(payload + "\n", encoding="utf-8")
    except OSError as e:
        raise InterchangeError(f"Failed to write: {path}") from e


def read_rules_file(path: Path) -> list[Any]:
    if not path.exists():
        raise InterchangeError(f"File not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InterchangeError(f"Failed to read: {path}") from e

    return loads_rules(text)
