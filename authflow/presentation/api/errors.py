from typing import TypeVar

from ...application.results import Failure, FailureKind, Outcome, Success
from ...core.exceptions import (
    AuthenticationError,
    AuthflowError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

T = TypeVar("T")


def failure_to_error(failure: Failure) -> AuthflowError:
    kind = failure.kind
    if kind in (FailureKind.VALIDATION, FailureKind.ALREADY_VERIFIED):
        return ValidationError(failure.message)
    if kind is FailureKind.CONFLICT:
        return ConflictError(failure.message)
    if kind in (FailureKind.INVALID_CREDENTIALS, FailureKind.INVALID_TOKEN):
        return AuthenticationError(failure.message)
    if kind is FailureKind.INVALID_OR_EXPIRED:
        return AuthenticationError(failure.message, status_code=400)
    if kind in (FailureKind.UNVERIFIED, FailureKind.LOCKED, FailureKind.DEACTIVATED):
        return AuthorizationError(failure.message)
    if kind is FailureKind.NOT_FOUND:
        return NotFoundError(failure.message)
    raise ValueError(f"Unhandled failure kind: {kind}")


def ensure_success(outcome: Outcome[T]) -> Success[T]:
    """Return the success or raise the error mapped from the failure."""
    if isinstance(outcome, Failure):
        raise failure_to_error(outcome)
    return outcome
