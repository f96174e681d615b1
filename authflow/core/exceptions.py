"""Custom exceptions for the authflow HTTP surface."""

from typing import Optional


class AuthflowError(Exception):
    """Base exception for all authflow business errors

    The global exception handler catches this and renders the error response.

    Attributes:
        message: Human-readable error message, safe to show to clients
        code: Error code for client-side error handling
        status_code: HTTP status code of the rendered response
    """

    def __init__(self, message: str, code: str, status_code: int = 400):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AuthflowError):
    """Malformed input or a password policy violation."""

    def __init__(self, message: str):
        super().__init__(message, "VALIDATION_ERROR", 400)


class ConflictError(AuthflowError):
    """Duplicate resource, e.g. an email that is already registered."""

    def __init__(self, message: str):
        super().__init__(message, "CONFLICT", 409)


class AuthenticationError(AuthflowError):
    """Bad credentials, or an invalid/expired token or one-time code.

    Messages are deliberately generic so they cannot be used as an oracle.
    """

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message, "AUTHENTICATION_ERROR", status_code)


class AuthorizationError(AuthflowError):
    """Unverified, locked or deactivated account."""

    def __init__(self, message: str):
        super().__init__(message, "FORBIDDEN", 403)


class NotFoundError(AuthflowError):
    def __init__(self, message: str):
        super().__init__(message, "NOT_FOUND", 404)


class RateLimitError(AuthflowError):
    """Too many requests for a route class; carries retry guidance."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message, "RATE_LIMITED", 429)
        self.retry_after = retry_after


class InternalError(AuthflowError):
    """Unexpected failure, e.g. the store is unreachable or mail delivery is down."""

    def __init__(self, message: str):
        super().__init__(message, "INTERNAL_ERROR", 500)
