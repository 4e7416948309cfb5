"""
Public redirect emission.

Middleware that resolves every incoming request against the stored rules
and answers with a redirect on a match, without calling the rest of the app.

Key behaviors:
- Rules match the raw request path as sent, before percent-decoding
- Request query string is carried over to the target
- Status code comes from the matched rule
- Paths under excluded prefixes (admin, docs) are never redirected
- A failing rule store never blocks the request
- The rule lookup runs in the threadpool, off the event loop
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp, Scope

from src.components.redirects import (
    DEFAULT_CONFIG,
    RedirectConfig,
    Resolution,
    RuleStorePort,
    is_excluded_path,
    normalize_request_path,
    resolve_path,
)

logger = logging.getLogger(__name__)


def raw_request_target(scope: Scope) -> tuple[str, str]:
    """
    (path, query) exactly as the client sent them.

    ``scope["path"]`` is already percent-decoded, so an encoded ``%3F``
    would read as a query separator there. Servers that omit ``raw_path``
    fall back to the decoded path.
    """
    raw_path = scope.get("raw_path")
    if raw_path:
        path = raw_path.decode("latin-1").split("?", 1)[0]
    else:
        path = scope.get("path", "/")
    query = scope.get("query_string", b"").decode("latin-1")
    return path, query


def resolve_request(
    path: str,
    query_string: str,
    store: RuleStorePort,
    config: RedirectConfig = DEFAULT_CONFIG,
    routed_path: str | None = None,
) -> Resolution | None:
    """
    Resolve a public request.

    ``routed_path`` is the decoded path the app routes on; it is checked
    against the excluded prefixes as well as the raw path.

    Returns None when redirects are disabled, the path is excluded, or no
    rule matches.
    """
    if not config.enabled:
        return None

    path = normalize_request_path(path)
    for candidate in (path, routed_path):
        if candidate is not None and is_excluded_path(
            normalize_request_path(candidate), config
        ):
            return None

    return resolve_path(path, query_string, store.get_rules())


class RedirectMiddleware(BaseHTTPMiddleware):
    """Emit the configured redirect for matching requests."""

    def __init__(
        self,
        app: ASGIApp,
        store_provider: Callable[[], RuleStorePort],
        config: RedirectConfig | None = None,
    ) -> None:
        super().__init__(app)
        self._store_provider = store_provider
        self._config = config or DEFAULT_CONFIG

    def _lookup(self, scope: Scope) -> Resolution | None:
        path, query = raw_request_target(scope)
        return resolve_request(
            path,
            query,
            self._store_provider(),
            self._config,
            routed_path=scope.get("path"),
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            # SQLite reads block, keep them off the event loop
            resolution = await run_in_threadpool(self._lookup, request.scope)
        except Exception:
            logger.exception("Redirect lookup failed for %s", request.url.path)
            resolution = None

        if resolution is None:
            return await call_next(request)

        logger.info(
            "Redirecting %s -> %s (%d, rule %s)",
            request.url.path,
            resolution.target,
            resolution.status_code,
            resolution.matched_from,
        )
        return RedirectResponse(url=resolution.target, status_code=resolution.status_code)
