from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Union

import jwt

from ...domain.ports.clock import Clock

logger = logging.getLogger(__name__)

_REQUIRED_CLAIMS = ("sub", "email", "exp")


class TokenFailure(str, Enum):
    EXPIRED = "expired"
    MALFORMED = "malformed"
    MISSING_CLAIMS = "missing_claims"


@dataclass(frozen=True, slots=True)
class TokenClaims:
    account_id: str
    email: str
    expires_at: datetime


class TokenIssuer:
    """Mints and validates stateless signed bearer tokens."""

    def __init__(
        self,
        secret_key: str,
        clock: Clock,
        expiration_days: int = 7,
        algorithm: str = "HS256",
    ) -> None:
        if not secret_key:
            raise RuntimeError("JWT_SECRET is not configured.")
        self._secret_key = secret_key
        self._clock = clock
        self._expiration = timedelta(days=expiration_days)
        self._algorithm = algorithm

    def issue(self, account_id: str, email: str) -> str:
        now = self._clock.now()
        payload = {
            "sub": str(account_id),
            "email": email,
            "iat": int(now.timestamp()),
            "exp": int((now + self._expiration).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def validate(self, token: str) -> Union[TokenClaims, TokenFailure]:
        try:
            # Expiry is checked against the injected clock below.
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected malformed token: %s", exc)
            return TokenFailure.MALFORMED

        if any(not payload.get(claim) for claim in _REQUIRED_CLAIMS):
            return TokenFailure.MISSING_CLAIMS

        try:
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return TokenFailure.MALFORMED
        if self._clock.now() >= expires_at:
            return TokenFailure.EXPIRED

        return TokenClaims(
            account_id=str(payload["sub"]),
            email=str(payload["email"]),
            expires_at=expires_at,
        )
