"""Page-level auth redirects for the single-page frontend.

Only the presence of the session cookie is checked here; the API validates
the token itself on every call.
"""

from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from taskhive.core.config import get_settings

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
HOME_PATH = "/"
LANDING_PATH = "/todos"
PUBLIC_PATHS = frozenset({LOGIN_PATH})
PASSTHROUGH_PREFIXES = (
    "/admin",
    "/api",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/health",
    "/_next",
    "/static",
    "/favicon.ico",
    "/robots.txt",
)


def _is_passthrough(path: str) -> bool:
    return any(path == p or path.startswith(f"{p}/") for p in PASSTHROUGH_PREFIXES)


def redirect_target(path: str, authenticated: bool) -> str | None:
    """Where a page request for ``path`` should be sent, or None to let it through."""
    if _is_passthrough(path):
        return None
    if path == HOME_PATH:
        return LANDING_PATH if authenticated else LOGIN_PATH
    if path in PUBLIC_PATHS:
        return LANDING_PATH if authenticated else None
    if not authenticated:
        return LOGIN_PATH
    return None


class AuthRedirectMiddleware(BaseHTTPMiddleware):
    """Bounce page requests between /login and /todos based on the session cookie."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cookie_name = get_settings().auth_cookie_name
        authenticated = bool(request.cookies.get(cookie_name))
        target = redirect_target(request.url.path, authenticated)
        if target is not None:
            logger.debug("Redirecting %s -> %s", request.url.path, target)
            return RedirectResponse(url=target, status_code=307)
        return await call_next(request)
