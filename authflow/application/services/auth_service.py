"""Account lifecycle flows: signup, verification, sign-in, recovery and deactivation."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ...domain.models import (
    DISPLAY_NAME_MAX_LENGTH,
    PROFILE_NAME_MAX_LENGTH,
    Account,
    CodePurpose,
    PendingCode,
    is_valid_email,
    normalize_email,
    profile_completeness,
)
from ...domain.ports.clock import Clock
from ...domain.ports.mailer import Mailer
from ...domain.ports.persistence import CredentialStore, DuplicateEmailError
from ..results import Failure, FailureKind, Outcome, Success
from .code_issuer import CodeIssuer
from .lock_policy import AccountLockPolicy
from .password_hasher import PasswordHasher, password_policy_violation
from .token_issuer import TokenFailure, TokenIssuer

logger = logging.getLogger(__name__)

SIGNUP_MESSAGE = "Account created successfully. Please check your email for verification code."
VERIFIED_MESSAGE = "Email verified successfully! You can now sign in."
SIGNIN_MESSAGE = "Signed in successfully"
RESEND_MESSAGE = "Verification code sent to your email"
FORGOT_MESSAGE = "If an account with this email exists, a password reset code has been sent."
RESET_MESSAGE = "Password has been reset successfully. Please sign in with your new password."
LOGOUT_MESSAGE = "Logged out successfully"
DEACTIVATED_MESSAGE = "Account has been deactivated successfully"
PROFILE_UPDATED_MESSAGE = "Profile updated successfully"

INVALID_EMAIL_MESSAGE = "Please provide a valid email address"
INVALID_CODE_MESSAGE = "Invalid email or verification code"
INVALID_RESET_MESSAGE = "Invalid or expired reset code"
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
UNVERIFIED_MESSAGE = "Please verify your email before signing in"
LOCKED_MESSAGE = "Account is temporarily locked due to too many failed sign-in attempts. Please try again later."
CONFLICT_MESSAGE = "An account with this email already exists"
RESEND_FAILED_MESSAGE = "Unable to resend a verification code for this email"
SESSION_MESSAGE = "Your session is no longer valid. Please sign in again."
NOT_FOUND_MESSAGE = "Account not found"
ACCOUNT_DEACTIVATED_MESSAGE = "Account has been deactivated"

_UNSET: Any = object()


@dataclass(frozen=True, slots=True)
class CodeDispatch:
    """Result of issuing a code: the account and whether delivery worked.

    ``code`` is only populated when delivery failed and codes may be exposed
    (non-production operator recovery).
    """

    account: Account
    delivered: bool
    code: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SigninResult:
    token: str
    account: Account


class AuthService:
    """Coordinates the credential lifecycle state machine."""

    def __init__(
        self,
        store: CredentialStore,
        codes: CodeIssuer,
        passwords: PasswordHasher,
        tokens: TokenIssuer,
        lock_policy: AccountLockPolicy,
        mailer: Mailer,
        clock: Clock,
        *,
        expose_codes: bool = False,
    ) -> None:
        self._store = store
        self._codes = codes
        self._passwords = passwords
        self._tokens = tokens
        self._lock_policy = lock_policy
        self._mailer = mailer
        self._clock = clock
        self._expose_codes = expose_codes

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------
    def signup(self, email: str, password: str, name: Optional[str] = None) -> Outcome[CodeDispatch]:
        """
        Register a new, unverified account and send it a verification code.

        Args:
            email: Email address (normalized before use)
            password: Plain text password, checked against the policy
            name: Optional display name

        Returns:
            Success carrying a CodeDispatch, or a VALIDATION / CONFLICT failure
        """
        normalized = normalize_email(email)
        if not normalized or not is_valid_email(normalized):
            return Failure(FailureKind.VALIDATION, INVALID_EMAIL_MESSAGE, "malformed_email")

        violation = password_policy_violation(password)
        if violation:
            return Failure(FailureKind.VALIDATION, violation, "password_policy")

        display_name = (name or "").strip() or None
        if display_name and len(display_name) > DISPLAY_NAME_MAX_LENGTH:
            return Failure(
                FailureKind.VALIDATION,
                f"Name cannot exceed {DISPLAY_NAME_MAX_LENGTH} characters",
                "name_too_long",
            )

        issued = self._codes.issue()
        now = self._clock.now()
        account = Account(
            id=uuid.uuid4().hex,
            email=normalized,
            password_hash=self._passwords.hash(password),
            display_name=display_name,
            pending_email_code=PendingCode(issued.code_hash, issued.expires_at),
            created_at=now,
            updated_at=now,
        )
        try:
            self._store.insert(account)
        except DuplicateEmailError:
            logger.info("Signup rejected: email already registered.")
            return Failure(FailureKind.CONFLICT, CONFLICT_MESSAGE, "duplicate_email")

        logger.info("Created account %s", account.id)
        dispatch = self._deliver_verification(account, issued.code)
        return Success(SIGNUP_MESSAGE, dispatch)

    def verify_email(self, email: str, code: str) -> Outcome[Account]:
        account = self._store.find_by_email(normalize_email(email))
        if account is None or not account.is_active:
            return self._invalid_code("unknown_account")
        if account.email_verified:
            return self._invalid_code("already_verified")

        pending = account.pending_email_code
        if pending is None:
            return self._invalid_code("no_pending_code")
        if pending.is_expired(self._clock.now()):
            self._store.clear_pending_code(account.id, CodePurpose.EMAIL_VERIFICATION, pending.code_hash)
            return self._invalid_code("expired")
        if not self._codes.verify(pending.code_hash, pending.expires_at, code):
            return self._invalid_code("mismatch")

        if not self._store.consume_email_code(account.id, pending.code_hash, self._clock.now()):
            return self._invalid_code("already_consumed")

        logger.info("Email verified for account %s", account.id)
        return Success(VERIFIED_MESSAGE, self._store.find_by_id(account.id))

    def resend_verification(self, email: str) -> Outcome[CodeDispatch]:
        account = self._store.find_by_email(normalize_email(email))
        if account is None or not account.is_active:
            return Failure(FailureKind.NOT_FOUND, RESEND_FAILED_MESSAGE, "unknown_account")
        if account.email_verified:
            return Failure(FailureKind.ALREADY_VERIFIED, RESEND_FAILED_MESSAGE, "already_verified")

        issued = self._codes.issue()
        if not self._store.set_pending_code(
            account.id, CodePurpose.EMAIL_VERIFICATION, issued.code_hash, issued.expires_at
        ):
            return Failure(FailureKind.ALREADY_VERIFIED, RESEND_FAILED_MESSAGE, "changed_concurrently")
        logger.info("Reissued verification code for account %s", account.id)
        return Success(RESEND_MESSAGE, self._deliver_verification(account, issued.code))

    # ------------------------------------------------------------------
    # Sign-in
    # ------------------------------------------------------------------
    def signin(self, email: str, password: str) -> Outcome[SigninResult]:
        account = self._store.find_by_email(normalize_email(email))
        if account is None or not account.is_active:
            logger.warning("Sign-in rejected: unknown or inactive account.")
            return Failure(FailureKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE, "unknown_account")

        if self._lock_policy.is_locked(account):
            logger.warning("Sign-in rejected: account %s is locked.", account.id)
            return Failure(FailureKind.LOCKED, LOCKED_MESSAGE, "locked")

        if not self._passwords.verify(password, account.password_hash):
            failures = self._lock_policy.record_failure(self._store, account.id)
            logger.warning(
                "Sign-in rejected: wrong password for account %s (%s consecutive failures).",
                account.id,
                failures,
            )
            return Failure(FailureKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE, "wrong_password")

        if not account.email_verified:
            return Failure(FailureKind.UNVERIFIED, UNVERIFIED_MESSAGE, "unverified")

        if not self._lock_policy.record_success(self._store, account):
            logger.warning("Sign-in rejected: account %s changed during sign-in.", account.id)
            return Failure(FailureKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE, "changed_concurrently")
        account = self._store.find_by_id(account.id)
        token = self._tokens.issue(account.id, account.email)
        logger.info("Account %s signed in.", account.id)
        return Success(SIGNIN_MESSAGE, SigninResult(token=token, account=account))

    def logout(self) -> Success[None]:
        # Tokens are stateless; they stay valid until their own expiry.
        return Success(LOGOUT_MESSAGE)

    def authenticate(self, token: str) -> Outcome[Account]:
        """Resolve a bearer token to its active account."""
        claims = self._tokens.validate(token)
        if isinstance(claims, TokenFailure):
            logger.warning("Token rejected: %s", claims.value)
            return Failure(FailureKind.INVALID_TOKEN, SESSION_MESSAGE, claims.value)
        return self._load_active(claims.account_id)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------
    def forgot_password(self, email: str) -> Success[None]:
        account = self._store.find_by_email(normalize_email(email))
        if account is not None and account.is_active:
            issued = self._codes.issue()
            if not self._store.set_pending_code(
                account.id, CodePurpose.PASSWORD_RESET, issued.code_hash, issued.expires_at
            ):
                logger.info("Password reset skipped: account %s changed concurrently.", account.id)
            elif not self._mailer.send_reset_code(account.email, issued.code, self._codes.ttl_minutes):
                logger.error("Failed to deliver password reset code for account %s", account.id)
            else:
                logger.info("Password reset code sent for account %s", account.id)
        return Success(FORGOT_MESSAGE)

    def reset_password(self, email: str, code: str, new_password: str) -> Outcome[None]:
        violation = password_policy_violation(new_password)
        if violation:
            return Failure(FailureKind.VALIDATION, violation, "password_policy")

        account = self._store.find_by_email(normalize_email(email))
        if account is None or not account.is_active:
            return self._invalid_reset("unknown_account")
        pending = account.pending_reset_code
        if pending is None:
            return self._invalid_reset("no_pending_code")
        if pending.is_expired(self._clock.now()):
            self._store.clear_pending_code(account.id, CodePurpose.PASSWORD_RESET, pending.code_hash)
            return self._invalid_reset("expired")
        if not self._codes.verify(pending.code_hash, pending.expires_at, code):
            return self._invalid_reset("mismatch")

        new_hash = self._passwords.hash(new_password)
        if not self._store.consume_reset_code(account.id, pending.code_hash, self._clock.now(), new_hash):
            return self._invalid_reset("already_consumed")

        logger.info("Password reset for account %s", account.id)
        return Success(RESET_MESSAGE)

    # ------------------------------------------------------------------
    # Authenticated account operations
    # ------------------------------------------------------------------
    def deactivate(self, account_id: str) -> Outcome[None]:
        loaded = self._load_active(account_id)
        if isinstance(loaded, Failure):
            return loaded
        account = loaded.value
        if not self._store.deactivate(account.id):
            return Failure(FailureKind.DEACTIVATED, ACCOUNT_DEACTIVATED_MESSAGE, "deactivated")
        logger.info("Account %s deactivated.", account.id)
        return Success(DEACTIVATED_MESSAGE)

    def get_profile(self, account_id: str) -> Outcome[Account]:
        return self._load_active(account_id)

    def update_profile(
        self,
        account_id: str,
        display_name: Optional[str] = _UNSET,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Outcome[Account]:
        loaded = self._load_active(account_id)
        if isinstance(loaded, Failure):
            return loaded
        changes: Dict[str, Optional[str]] = {}
        if display_name is not _UNSET:
            cleaned = (display_name or "").strip() or None
            if cleaned and len(cleaned) > DISPLAY_NAME_MAX_LENGTH:
                return Failure(
                    FailureKind.VALIDATION,
                    f"Name cannot exceed {DISPLAY_NAME_MAX_LENGTH} characters",
                    "name_too_long",
                )
            changes["display_name"] = cleaned

        for label, value in (("First name", first_name), ("Last name", last_name)):
            if value and len(value.strip()) > PROFILE_NAME_MAX_LENGTH:
                return Failure(
                    FailureKind.VALIDATION,
                    f"{label} cannot exceed {PROFILE_NAME_MAX_LENGTH} characters",
                    "profile_name_too_long",
                )

        for column, value in (("first_name", first_name), ("last_name", last_name), ("avatar_url", avatar_url)):
            cleaned = (value or "").strip()
            if cleaned:
                changes[column] = cleaned

        if not self._store.update_profile(account_id, changes):
            return Failure(FailureKind.DEACTIVATED, ACCOUNT_DEACTIVATED_MESSAGE, "deactivated")
        return Success(PROFILE_UPDATED_MESSAGE, self._store.find_by_id(account_id))

    def account_stats(self, account_id: str) -> Outcome[Dict[str, Any]]:
        loaded = self._load_active(account_id)
        if isinstance(loaded, Failure):
            return loaded
        account = loaded.value
        stats = {
            "created_at": account.created_at,
            "last_login_at": account.last_login_at,
            "email_verified": account.email_verified,
            "profile_completeness": profile_completeness(account),
            "account_status": "active" if account.is_active else "inactive",
        }
        return Success("Account statistics", stats)

    # ------------------------------------------------------------------
    # Development helpers
    # ------------------------------------------------------------------
    def force_verify_email(self, email: str) -> Outcome[None]:
        if not self._expose_codes:
            return Failure(FailureKind.NOT_FOUND, "Endpoint not found", "disabled")
        account = self._store.find_by_email(normalize_email(email))
        if account is None:
            return Failure(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGE, "unknown_account")
        self._store.mark_email_verified(account.id)
        logger.warning("Email force-verified for account %s (development mode).", account.id)
        return Success("Email verified successfully (development mode)")

    def force_reset_password(self, email: str, new_password: str) -> Outcome[None]:
        if not self._expose_codes:
            return Failure(FailureKind.NOT_FOUND, "Endpoint not found", "disabled")
        violation = password_policy_violation(new_password)
        if violation:
            return Failure(FailureKind.VALIDATION, violation, "password_policy")
        account = self._store.find_by_email(normalize_email(email))
        if account is None:
            return Failure(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGE, "unknown_account")
        self._store.set_password_hash(account.id, self._passwords.hash(new_password))
        logger.warning("Password force-reset for account %s (development mode).", account.id)
        return Success("Password updated successfully (development mode)")

    # ------------------------------------------------------------------
    def purge_expired_codes(self) -> int:
        return self._store.purge_expired_codes(self._clock.now())

    def _load_active(self, account_id: str) -> Outcome[Account]:
        account = self._store.find_by_id(account_id)
        if account is None:
            return Failure(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGE, "unknown_account")
        if not account.is_active:
            return Failure(FailureKind.DEACTIVATED, ACCOUNT_DEACTIVATED_MESSAGE, "deactivated")
        return Success("", account)

    def _deliver_verification(self, account: Account, code: str) -> CodeDispatch:
        delivered = self._mailer.send_verification_code(account.email, code, self._codes.ttl_minutes)
        if delivered:
            return CodeDispatch(account=account, delivered=True)
        logger.warning("Failed to deliver verification code for account %s", account.id)
        return CodeDispatch(
            account=account,
            delivered=False,
            code=code if self._expose_codes else None,
        )

    @staticmethod
    def _invalid_code(reason: str) -> Failure:
        logger.warning("Email verification rejected: %s", reason)
        return Failure(FailureKind.INVALID_OR_EXPIRED, INVALID_CODE_MESSAGE, reason)

    @staticmethod
    def _invalid_reset(reason: str) -> Failure:
        logger.warning("Password reset rejected: %s", reason)
        return Failure(FailureKind.INVALID_OR_EXPIRED, INVALID_RESET_MESSAGE, reason)
