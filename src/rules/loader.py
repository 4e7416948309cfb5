import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from src.rules.models import Rules

logger = logging.getLogger(__name__)

DEFAULT_RULES_FILENAME = "rules.yaml"
RULES_PATH_ENV = "REDIRECTS_RULES_PATH"

_FENCED_YAML = re.compile(r"^\s*```ya?ml\s*$(.*?)^\s*```", re.MULTILINE | re.DOTALL)


def find_rules_path(explicit: str | None = None) -> Path:
    """Explicit path, else $REDIRECTS_RULES_PATH, else rules.yaml in the cwd."""
    if explicit:
        return Path(explicit)
    return Path(os.environ.get(RULES_PATH_ENV) or Path.cwd() / DEFAULT_RULES_FILENAME)


def parse_rules(text: str, source: str = "<rules>") -> Rules:
    """
    Validate rules from YAML text.

    Markdown files are accepted too: the first ```yaml block is used.
    An empty document gives the defaults.
    Raises ValueError if YAML or schema invalid.
    """
    fenced = _FENCED_YAML.search(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in {source}: {e}") from e

    try:
        return Rules.model_validate(data or {})
    except ValidationError as e:
        raise ValueError(f"Rules validation failed for {source}:\n{e}") from e


def load_rules(path: Path) -> Rules:
    """
    Load and validate the rules file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if YAML or schema invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    return parse_rules(path.read_text(encoding="utf-8"), source=str(path))


def load_rules_or_default(path: Path) -> Rules:
    """Like load_rules, but a missing file gives the built-in defaults."""
    if not path.exists():
        logger.info("No rules file at %s, using defaults", path)
        return Rules()
    return load_rules(path)
