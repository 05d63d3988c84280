"""
Middleware Package
==================

Starlette middleware for security headers and browser page guarding.
"""

from .page_guard import PageGuardMiddleware, is_public_path
from .security import SecurityHeadersMiddleware

__all__ = [
    "PageGuardMiddleware",
    "SecurityHeadersMiddleware",
    "is_public_path",
]
