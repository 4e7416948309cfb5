import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteRuleStore
from src.api.deps import build_rule_store, db_path_for, get_rules, get_settings
from src.api.routes import admin_redirects
from src.api.routes.public_redirects import RedirectMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and prepare the database on startup (fail-fast)
    try:
        rules = get_rules(settings)
        SQLiteMigrator(
            db_path_for(settings, rules), timeout=rules.storage.busy_timeout_seconds
        ).run_migrations()
        logger.info("Rules loaded from %s", settings.rules_path)
        if not settings.admin_token:
            logger.warning("REDIRECTS_ADMIN_TOKEN not set, admin API disabled")
    except Exception as e:
        print(f"CRITICAL: Startup failed: {e}", file=sys.stderr)
        sys.exit(1)

    yield


def _store_provider() -> SQLiteRuleStore:
    settings = get_settings()
    return build_rule_store(settings, get_rules(settings))


def create_app() -> FastAPI:
    settings = get_settings()
    rules = get_rules(settings)

    app = FastAPI(
        title=rules.api.title,
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.include_router(
        admin_redirects.router,
        prefix=rules.api.admin_prefix,
        tags=["Admin Redirects"],
    )

    app.add_middleware(
        RedirectMiddleware,
        store_provider=_store_provider,
        config=rules.redirects.to_config(),
    )

    @app.get("/health")
    def health_check() -> dict[str, Any]:
        return {"status": "ok"}

    return app
