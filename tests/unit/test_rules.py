"""
Rules file loading and validation tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from src.rules.loader import find_rules_path, load_rules, load_rules_or_default, parse_rules
from src.rules.models import RedirectRules, Rules


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def write_rules(tmp_path: Path, rules: dict[str, Any]) -> Path:
    path = tmp_path / "rules.yaml"
    path.write_text(yaml.dump(rules), encoding="utf-8")
    return path


class TestRulesLoading:
    """Test rules file loading."""

    def test_load_project_rules_file(self, project_root: Path) -> None:
        rules = load_rules(project_root / "rules.yaml")

        assert rules.redirects.enabled is True
        assert rules.redirects.default_status_code == 301
        assert "/api/admin" in rules.redirects.excluded_path_prefixes

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_rules(tmp_path / "nope.yaml")

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yaml"
        path.write_text("", encoding="utf-8")

        assert load_rules(path) == Rules()

    def test_partial_file(self, tmp_path: Path) -> None:
        path = write_rules(tmp_path, {"storage": {"data_dir": "/srv/data"}})

        rules = load_rules(path)

        assert rules.storage.data_dir == "/srv/data"
        assert rules.storage.db_filename == "redirects.db"
        assert rules.redirects.allowed_status_codes == [301, 302, 303, 307, 308]

    def test_fenced_yaml_block(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.md"
        path.write_text(
            "# Redirect settings\n\n```yaml\nredirects:\n  default_status_code: 302\n```\n",
            encoding="utf-8",
        )

        assert load_rules(path).redirects.default_status_code == 302

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yaml"
        path.write_text("redirects: [unclosed", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_rules(path)


class TestRulesLookup:
    """Test rules path discovery and default fallback."""

    def test_explicit_path_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REDIRECTS_RULES_PATH", "/etc/from-env.yaml")
        assert find_rules_path("custom.yaml") == Path("custom.yaml")

    def test_environment_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REDIRECTS_RULES_PATH", "/etc/from-env.yaml")
        assert find_rules_path() == Path("/etc/from-env.yaml")

    def test_cwd_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("REDIRECTS_RULES_PATH", raising=False)
        monkeypatch.chdir(tmp_path)
        assert find_rules_path() == tmp_path / "rules.yaml"

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_rules_or_default(tmp_path / "absent.yaml") == Rules()

    def test_existing_file_is_validated(self, tmp_path: Path) -> None:
        path = write_rules(tmp_path, {"redirects": {"allowed_status_codes": [200]}})
        with pytest.raises(ValueError):
            load_rules_or_default(path)

    def test_parse_rules_names_source(self) -> None:
        with pytest.raises(ValueError, match="site.yaml"):
            parse_rules("storage: {busy_timeout_seconds: -1}", source="site.yaml")


class TestRulesValidation:
    """Test schema constraints."""

    def test_default_must_be_allowed(self, tmp_path: Path) -> None:
        path = write_rules(
            tmp_path,
            {"redirects": {"default_status_code": 307, "allowed_status_codes": [301, 302]}},
        )
        with pytest.raises(ValueError, match="Rules validation failed"):
            load_rules(path)

    def test_non_redirect_codes_rejected(self, tmp_path: Path) -> None:
        path = write_rules(tmp_path, {"redirects": {"allowed_status_codes": [200, 301]}})
        with pytest.raises(ValueError, match="not redirect status codes"):
            load_rules(path)

    def test_empty_allowed_codes_rejected(self, tmp_path: Path) -> None:
        path = write_rules(tmp_path, {"redirects": {"allowed_status_codes": []}})
        with pytest.raises(ValueError):
            load_rules(path)

    def test_excluded_prefix_must_be_path(self, tmp_path: Path) -> None:
        path = write_rules(tmp_path, {"redirects": {"excluded_path_prefixes": ["api"]}})
        with pytest.raises(ValueError, match="must start with /"):
            load_rules(path)

    def test_busy_timeout_positive(self, tmp_path: Path) -> None:
        path = write_rules(tmp_path, {"storage": {"busy_timeout_seconds": 0}})
        with pytest.raises(ValueError):
            load_rules(path)


class TestRedirectRulesPort:
    """Test the RulesPort methods and config conversion."""

    def test_port_methods(self) -> None:
        rules = RedirectRules(
            default_status_code=302,
            allowed_status_codes=[301, 302],
            excluded_path_prefixes=["/admin"],
        )

        assert rules.is_enabled() is True
        assert rules.get_default_status_code() == 302
        assert rules.get_allowed_status_codes() == (301, 302)
        assert rules.get_excluded_path_prefixes() == ("/admin",)

    def test_to_config(self) -> None:
        config = RedirectRules(enabled=False).to_config()

        assert config.enabled is False
        assert config.default_status_code == 301
        assert config.allowed_status_codes == (301, 302, 303, 307, 308)
        assert config.excluded_path_prefixes == ()
