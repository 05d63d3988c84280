"""
Page guard for browser navigation.

Only the signed cookie is checked here (no database). API routes are never
redirected; they run their own authoritative checks and answer 401/403.
"""

import logging
from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from ..auth import decode_session_token
from ..config import get_settings

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"

PUBLIC_PATHS = {LOGIN_PATH, "/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico"}
PUBLIC_PREFIXES = ("/api/", "/assets/", "/static/", "/_next/", "/docs/")
STATIC_SUFFIXES = (
    ".js", ".css", ".map", ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico",
    ".webp", ".woff", ".woff2", ".ttf", ".txt", ".json",
)


def is_public_path(path: str) -> bool:
    if path == "/api" or path in PUBLIC_PATHS:
        return True
    if path.startswith(PUBLIC_PREFIXES):
        return True
    return path.lower().endswith(STATIC_SUFFIXES)


def _is_admin_path(path: str) -> bool:
    return path == "/admin" or path.startswith("/admin/")


class PageGuardMiddleware(BaseHTTPMiddleware):
    """Redirect unauthenticated page loads to the login page"""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if is_public_path(path):
            return await call_next(request)

        token = request.cookies.get(get_settings().session_cookie_name)
        payload = decode_session_token(token)
        if payload is None:
            return RedirectResponse(f"{LOGIN_PATH}?from={quote(path, safe='/')}", status_code=307)

        if _is_admin_path(path) and not payload.is_admin:
            logger.info(f"Page guard: {payload.username!r} is not an admin, redirecting {path}")
            return RedirectResponse(LOGIN_PATH, status_code=307)

        return await call_next(request)
