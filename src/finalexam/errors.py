"""Error taxonomy for the action API.

Every failure a handler can report is an ``ApiError`` subclass. The exception
handler in ``finalexam.middleware.error_handler`` renders them as
``{"error": message}`` with the class's status code.
"""

from __future__ import annotations


class ApiError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError, ValueError):
    """Malformed, missing or oversized input.

    Also a ``ValueError`` so pydantic validators can raise it directly.
    """

    status_code = 400


class AuthenticationError(ApiError):
    """Missing, invalid or expired token, or bad credentials."""

    status_code = 401


class AuthorizationError(ApiError):
    """The actor does not own the targeted resource.

    Reported as not-found so callers cannot probe for other users' rows.
    """

    status_code = 404


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class RateLimitError(ApiError):
    """Too many attempts for a rate-limited action."""

    status_code = 429

    def __init__(self, message: str, *, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class InternalError(ApiError):
    status_code = 500
