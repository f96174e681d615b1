from datetime import datetime, timedelta, timezone
from typing import List, Tuple

import pytest

from authflow.application.services.auth_service import AuthService
from authflow.application.services.code_issuer import CodeIssuer
from authflow.application.services.lock_policy import AccountLockPolicy
from authflow.application.services.password_hasher import PasswordHasher
from authflow.application.services.token_issuer import TokenIssuer
from authflow.infrastructure.persistence.sqlite import SQLiteCredentialStore

JWT_SECRET = "tests-secret-key-that-is-long-enough-for-hs256"
EMAIL = "alice@example.com"
PASSWORD = "Secret#123"


class FrozenClock:
    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class RecordingMailer:
    """Captures outgoing codes instead of talking to SMTP."""

    def __init__(self) -> None:
        self.enabled = True
        self.fail = False
        self.verification_codes: List[Tuple[str, str]] = []
        self.reset_codes: List[Tuple[str, str]] = []

    def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        return not self.fail

    def send_verification_code(self, to_email: str, code: str, ttl_minutes: int) -> bool:
        if self.fail:
            return False
        self.verification_codes.append((to_email, code))
        return True

    def send_reset_code(self, to_email: str, code: str, ttl_minutes: int) -> bool:
        if self.fail:
            return False
        self.reset_codes.append((to_email, code))
        return True

    def last_verification_code(self) -> str:
        return self.verification_codes[-1][1]

    def last_reset_code(self) -> str:
        return self.reset_codes[-1][1]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def store(tmp_path, clock):
    credential_store = SQLiteCredentialStore(tmp_path / "authflow.db", clock=clock)
    yield credential_store
    credential_store.close()


def build_service(store, mailer, clock, *, expose_codes: bool = False, codes=None, passwords=None) -> AuthService:
    return AuthService(
        store=store,
        codes=codes or CodeIssuer(clock),
        passwords=passwords or PasswordHasher(rounds=4),
        tokens=TokenIssuer(JWT_SECRET, clock),
        lock_policy=AccountLockPolicy(clock),
        mailer=mailer,
        clock=clock,
        expose_codes=expose_codes,
    )


@pytest.fixture
def service(store, mailer, clock) -> AuthService:
    return build_service(store, mailer, clock)


@pytest.fixture
def verified_account(service, mailer):
    service.signup(EMAIL, PASSWORD, "Alice")
    service.verify_email(EMAIL, mailer.last_verification_code())
    return service.signin(EMAIL, PASSWORD).value.account
