"""
Shared error types.

Service modules raise these; the API layer turns them into
`{"error": message}` JSON bodies with the matching status code.
"""


class AppError(Exception):
    """Base class for expected, client-facing failures."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class ValidationFailed(AppError):
    status_code = 400


class Conflict(AppError):
    """Duplicate username, self-vote and similar rule violations."""
    status_code = 400


class NotAuthenticated(AppError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class PermissionDenied(AppError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFound(AppError):
    status_code = 404


class UpstreamError(AppError):
    """The LLM call failed, timed out or returned something unusable."""
    status_code = 500
