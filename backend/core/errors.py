"""
Application error taxonomy.

Services raise these; the API layer turns them into
``{"status": "error", "message": ...}`` responses with the matching status code.
"""


class AppError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed input or a guarded transition that is not allowed yet."""
    status_code = 400


class UnauthorizedError(AppError):
    """Missing, invalid or expired credential."""
    status_code = 401


class ForbiddenError(AppError):
    """Authenticated, but not the owner or not the right role."""
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """Duplicate of a record that must be unique."""
    status_code = 409


class UpstreamError(AppError):
    """The binary asset store failed."""
    status_code = 502
