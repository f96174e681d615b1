"""Password hashing and the password acceptance policy."""

import hashlib
from typing import List, Optional

import bcrypt

MIN_PASSWORD_LENGTH = 8
SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'


def password_policy_violation(password: Optional[str]) -> Optional[str]:
    """
    Check a candidate password against the acceptance policy.

    Args:
        password: Plain text password

    Returns:
        A human-readable reason when the password is rejected, None otherwise.
        The reason lists only the character classes that are missing.
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"

    missing: List[str] = []
    if not any(char.isupper() for char in password):
        missing.append("one uppercase letter")
    if not any(char.islower() for char in password):
        missing.append("one lowercase letter")
    if not any(char.isdigit() for char in password):
        missing.append("one number")
    if not any(char in SPECIAL_CHARACTERS for char in password):
        missing.append("one special character")

    if not missing:
        return None
    if len(missing) == 1:
        listed = missing[0]
    else:
        listed = ", ".join(missing[:-1]) + f" and {missing[-1]}"
    return f"Password must contain at least {listed}"


class PasswordHasher:
    """Salted bcrypt hashing with a configurable work factor."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    @staticmethod
    def _normalize(password: str) -> bytes:
        # bcrypt only reads 72 bytes of input; pre-hash so long passwords are not truncated.
        return hashlib.sha256(password.encode("utf-8")).hexdigest().encode("utf-8")

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(self._normalize(password), salt).decode("utf-8")

    def verify(self, password: str, password_hash: Optional[str]) -> bool:
        if not password or not password_hash:
            return False
        try:
            return bcrypt.checkpw(self._normalize(password), password_hash.encode("utf-8"))
        except ValueError:
            return False
