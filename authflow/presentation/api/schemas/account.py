"""Pydantic schemas for authenticated account endpoints."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ....domain.models import Account, public_view


class ProfileSchema(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None


class AccountResponse(BaseModel):
    """Public view of an account."""

    id: str
    email: str
    display_name: Optional[str] = None
    full_name: str
    email_verified: bool
    profile: ProfileSchema
    last_login_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls.model_validate(public_view(account))


class AccountEnvelope(BaseModel):
    account: AccountResponse


class UpdateProfileRequest(BaseModel):
    """Request schema for profile updates; omitted fields are left unchanged."""

    name: Optional[str] = None
    profile: Optional[ProfileSchema] = None


class UpdateProfileResponse(BaseModel):
    message: str
    account: AccountResponse


class AccountStats(BaseModel):
    created_at: datetime
    last_login_at: Optional[datetime] = None
    email_verified: bool
    profile_completeness: int
    account_status: str


class AccountStatsResponse(BaseModel):
    stats: AccountStats


class HealthAccount(BaseModel):
    id: str
    email: str


class HealthServices(BaseModel):
    database: Dict[str, Any]
    email: Dict[str, Any]


class DetailedHealthResponse(BaseModel):
    """Authenticated view of service health."""

    success: bool = True
    timestamp: datetime
    uptime_seconds: float
    account: HealthAccount
    services: HealthServices
    environment: str
