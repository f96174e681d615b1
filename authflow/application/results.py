"""Typed outcomes returned by the authentication service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


class FailureKind(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_OR_EXPIRED = "invalid_or_expired"
    INVALID_TOKEN = "invalid_token"
    UNVERIFIED = "unverified"
    LOCKED = "locked"
    DEACTIVATED = "deactivated"
    NOT_FOUND = "not_found"
    ALREADY_VERIFIED = "already_verified"


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    message: str
    value: Optional[T] = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Failure:
    """
    Expected failure of an operation.

    Attributes:
        kind: Category used to pick the outward error
        message: Text safe to show to the client
        reason: Internal detail for logs and tests, never sent to clients
    """

    kind: FailureKind
    message: str
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False


Outcome = Union[Success[T], Failure]
