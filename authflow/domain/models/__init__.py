"""Domain models for the authflow service."""

from .account import (
    DISPLAY_NAME_MAX_LENGTH,
    PROFILE_NAME_MAX_LENGTH,
    Account,
    CodePurpose,
    PendingCode,
    Profile,
    full_name,
    is_locked,
    is_valid_email,
    normalize_email,
    profile_completeness,
    public_view,
)

__all__ = [
    "DISPLAY_NAME_MAX_LENGTH",
    "PROFILE_NAME_MAX_LENGTH",
    "Account",
    "CodePurpose",
    "PendingCode",
    "Profile",
    "full_name",
    "is_locked",
    "is_valid_email",
    "normalize_email",
    "profile_completeness",
    "public_view",
]
