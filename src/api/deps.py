import os
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.adapters.sqlite.repos import SQLiteRuleStore
from src.components.redirects import RedirectService
from src.rules.loader import find_rules_path, load_rules
from src.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.rules_path = find_rules_path()
        # Overrides storage.data_dir from the rules file when set
        self.data_dir = os.environ.get("REDIRECTS_DATA_DIR")
        # Admin API is disabled unless a token is configured
        self.admin_token = os.environ.get("REDIRECTS_ADMIN_TOKEN") or None


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


def db_path_for(settings: Settings, rules: Rules) -> str:
    data_dir = settings.data_dir or rules.storage.data_dir
    return str(Path(data_dir) / rules.storage.db_filename)


def build_rule_store(settings: Settings, rules: Rules) -> SQLiteRuleStore:
    return SQLiteRuleStore(
        db_path_for(settings, rules),
        config=rules.redirects.to_config(),
        option_key=rules.redirects.option_key,
        timeout=rules.storage.busy_timeout_seconds,
    )


# --- Repos ---
def get_rule_store(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> SQLiteRuleStore:
    return build_rule_store(settings, rules)


# --- Component Services ---
def get_redirect_service(
    store: SQLiteRuleStore = Depends(get_rule_store),
    rules: Rules = Depends(get_rules),
) -> RedirectService:
    """Get redirect component service."""
    return RedirectService(store=store, config=rules.redirects.to_config())


# --- Auth ---
bearer_scheme = HTTPBearer(auto_error=False)


def require_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    settings: Settings = Depends(get_settings),
) -> None:
    """Guard the admin API with the configured bearer token."""
    if not settings.admin_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API disabled: REDIRECTS_ADMIN_TOKEN is not set",
        )

    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), settings.admin_token.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
