"""One-time numeric codes for email verification and password reset."""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import NamedTuple, Optional

from ...domain.ports.clock import Clock


class IssuedCode(NamedTuple):
    code: str
    code_hash: str
    expires_at: datetime


class CodeIssuer:
    """Generates numeric codes and checks submissions against their stored digest."""

    def __init__(self, clock: Clock, length: int = 6, ttl_minutes: int = 15) -> None:
        if length < 1:
            raise ValueError("Code length must be positive")
        self._clock = clock
        self.length = length
        self.ttl_minutes = ttl_minutes

    def issue(self) -> IssuedCode:
        """
        Generate a new code.

        Returns:
            Tuple of (code, code_hash, expires_at). Only the hash and expiry may
            be persisted; the plaintext code is for delivery.
        """
        code = "".join(str(secrets.randbelow(10)) for _ in range(self.length))
        expires_at = self._clock.now() + timedelta(minutes=self.ttl_minutes)
        return IssuedCode(code, self.hash_code(code), expires_at)

    def verify(
        self,
        code_hash: Optional[str],
        expires_at: Optional[datetime],
        submitted: Optional[str],
    ) -> bool:
        if not code_hash or expires_at is None or not submitted:
            return False
        if self._clock.now() > expires_at:
            return False
        return hmac.compare_digest(self.hash_code(submitted), code_hash)

    @staticmethod
    def hash_code(code: str) -> str:
        return hashlib.sha256(code.strip().encode("utf-8")).hexdigest()
