"""Pydantic schemas for authentication endpoints."""

from typing import Optional

from pydantic import BaseModel, EmailStr

from .account import AccountResponse


class SignupRequest(BaseModel):
    """Request schema for account registration."""

    email: EmailStr
    password: str
    name: Optional[str] = None


class SignupResponse(BaseModel):
    """Response schema for account registration."""

    message: str
    account_id: str
    email: str
    dev_verification_code: Optional[str] = None


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str


class SigninRequest(BaseModel):
    email: EmailStr
    password: str


class SigninResponse(BaseModel):
    """Response schema for a successful sign-in."""

    message: str
    access_token: str
    token_type: str = "bearer"
    account: AccountResponse


class EmailRequest(BaseModel):
    """Request schema for flows keyed only by email (resend, forgot)."""

    email: EmailStr


class ResendVerificationResponse(BaseModel):
    message: str
    dev_verification_code: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    code: str
    new_password: str


class DevResetPasswordRequest(BaseModel):
    email: EmailStr
    new_password: str


class MessageResponse(BaseModel):
    message: str
