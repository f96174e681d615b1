"""Account domain model for end-user authentication."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

DISPLAY_NAME_MAX_LENGTH = 100
PROFILE_NAME_MAX_LENGTH = 50

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CodePurpose(str, Enum):
    """Flows that issue a pending one-time code."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


@dataclass(slots=True)
class PendingCode:
    """Hashed one-time code awaiting consumption."""

    code_hash: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(slots=True)
class Profile:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(slots=True)
class Account:
    """
    Account entity holding credentials and lifecycle state.

    Attributes:
        id: Opaque unique identifier assigned at creation
        email: Normalized (trimmed, lower-cased) email address, unique
        password_hash: Adaptive password hash, never exposed outwardly
        display_name: Optional free-text name
        email_verified: Flips to True once, never reverts
        pending_email_code: Outstanding verification code, if any
        pending_reset_code: Outstanding password reset code, if any
        profile: Independently mutable profile sub-fields
        last_login_at: Timestamp of the last successful sign-in
        failed_login_count: Consecutive failed sign-ins since the last success
        locked_until: Sign-in is refused while this is in the future
        is_active: False once the account has been deactivated
        created_at: Creation timestamp
        updated_at: Last mutation timestamp
    """

    id: str
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime
    display_name: Optional[str] = None
    email_verified: bool = False
    pending_email_code: Optional[PendingCode] = None
    pending_reset_code: Optional[PendingCode] = None
    profile: Profile = field(default_factory=Profile)
    last_login_at: Optional[datetime] = None
    failed_login_count: int = 0
    locked_until: Optional[datetime] = None
    is_active: bool = True

    def __repr__(self) -> str:
        return (
            f"<Account id={self.id} email={self.email} verified={self.email_verified} "
            f"active={self.is_active}>"
        )


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.match(email))


def is_locked(account: Account, now: datetime) -> bool:
    return account.locked_until is not None and account.locked_until > now


def full_name(account: Account) -> str:
    """Return "first last" when both profile names exist, else the display name."""
    if account.profile.first_name and account.profile.last_name:
        return f"{account.profile.first_name} {account.profile.last_name}"
    return account.display_name or ""


def profile_completeness(account: Account) -> int:
    fields = [
        account.display_name,
        account.profile.first_name,
        account.profile.last_name,
        account.email_verified,
    ]
    completed = sum(1 for item in fields if item)
    return round(completed / len(fields) * 100)


def public_view(account: Account) -> Dict[str, Any]:
    """
    Outward-facing projection of an account.

    Password hash, pending codes, failed-login counter and lock state are
    deliberately absent.
    """
    return {
        "id": account.id,
        "email": account.email,
        "display_name": account.display_name,
        "full_name": full_name(account),
        "email_verified": account.email_verified,
        "profile": {
            "first_name": account.profile.first_name,
            "last_name": account.profile.last_name,
            "avatar_url": account.profile.avatar_url,
        },
        "last_login_at": account.last_login_at,
        "is_active": account.is_active,
        "created_at": account.created_at,
        "updated_at": account.updated_at,
    }
