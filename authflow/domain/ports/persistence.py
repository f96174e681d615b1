from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from ..models import Account, CodePurpose


class DuplicateEmailError(Exception):
    """Raised by a store when an insert collides with an existing normalized email."""

    def __init__(self, email: str) -> None:
        super().__init__(f"An account with email {email} already exists")
        self.email = email


class CredentialStore(Protocol):
    """Persistence functions related to end-user accounts."""

    def find_by_email(self, email: str) -> Optional[Account]:
        ...

    def find_by_id(self, account_id: str) -> Optional[Account]:
        ...

    def insert(self, account: Account) -> Account:
        """Persist a new account; raises :class:`DuplicateEmailError` atomically on collision."""
        ...

    def set_pending_code(
        self,
        account_id: str,
        purpose: CodePurpose,
        code_hash: str,
        expires_at: datetime,
    ) -> bool:
        """Replace the pending code of an active account; email codes only while unverified."""
        ...

    def record_failed_login(
        self,
        account_id: str,
        now: datetime,
        max_attempts: int,
        lock_until: datetime,
    ) -> int:
        """Atomically count a failed sign-in, locking at the threshold. Returns the new count, 0 if no active row."""
        ...

    def record_successful_login(self, account_id: str, password_hash: str, now: datetime) -> bool:
        """Reset the counter and stamp the login iff the account is still active, verified, unlocked and on this password hash."""
        ...

    def update_profile(self, account_id: str, changes: Dict[str, Optional[str]]) -> bool:
        ...

    def deactivate(self, account_id: str) -> bool:
        ...

    def mark_email_verified(self, account_id: str) -> bool:
        ...

    def set_password_hash(self, account_id: str, password_hash: str) -> bool:
        ...

    def consume_email_code(self, account_id: str, code_hash: str, now: datetime) -> bool:
        """Mark the email verified and clear the code iff the stored code still matches and is unexpired."""
        ...

    def consume_reset_code(
        self,
        account_id: str,
        code_hash: str,
        now: datetime,
        new_password_hash: str,
    ) -> bool:
        """Swap the password hash and clear the code iff the stored code still matches and is unexpired."""
        ...

    def clear_pending_code(
        self, account_id: str, purpose: CodePurpose, code_hash: Optional[str] = None
    ) -> None:
        """Drop the pending code; with ``code_hash`` only if that code is still the pending one."""
        ...

    def purge_expired_codes(self, now: datetime) -> int:
        ...

    def health_check(self) -> Dict[str, Any]:
        ...

    def close(self) -> None:
        ...
