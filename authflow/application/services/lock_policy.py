from datetime import datetime, timedelta

from ...domain.models import Account, is_locked
from ...domain.ports.clock import Clock
from ...domain.ports.persistence import CredentialStore


class AccountLockPolicy:
    """Counts failed sign-ins and temporarily locks an account at a threshold.

    Counting happens in a single store statement so concurrent failures are
    never lost; a lapsed lock restarts the count and an active one is not extended.
    """

    def __init__(self, clock: Clock, max_attempts: int = 5, lock_minutes: int = 30) -> None:
        self._clock = clock
        self.max_attempts = max_attempts
        self.lock_duration = timedelta(minutes=lock_minutes)

    def is_locked(self, account: Account) -> bool:
        return is_locked(account, self._clock.now())

    def lock_deadline(self, now: datetime) -> datetime:
        return now + self.lock_duration

    def record_failure(self, store: CredentialStore, account_id: str) -> int:
        """Count one failed sign-in; returns the consecutive failure count."""
        now = self._clock.now()
        return store.record_failed_login(account_id, now, self.max_attempts, self.lock_deadline(now))

    def record_success(self, store: CredentialStore, account: Account) -> bool:
        """Clear the counter and stamp the login; False if the account changed underneath."""
        return store.record_successful_login(account.id, account.password_hash, self._clock.now())
