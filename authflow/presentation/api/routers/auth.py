"""API router for account registration, sign-in and recovery."""

from fastapi import APIRouter, Depends, status

from ....application.results import Failure, FailureKind
from ....application.services.auth_service import AuthService, CodeDispatch
from ....core.config import Settings
from ....core.dependencies import get_auth_service, get_settings, throttle
from ....core.exceptions import InternalError, NotFoundError, ValidationError
from ...api.errors import ensure_success
from ...api.schemas.account import AccountResponse
from ...api.schemas.auth import (
    DevResetPasswordRequest,
    EmailRequest,
    MessageResponse,
    ResendVerificationResponse,
    ResetPasswordRequest,
    SigninRequest,
    SigninResponse,
    SignupRequest,
    SignupResponse,
    VerifyEmailRequest,
)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

SIGNUP_DELIVERY_FAILED = "Account created but failed to send verification email. Please contact support."
RESEND_DELIVERY_FAILED = "Failed to send verification code. Please try again later."


def _check_delivery(dispatch: CodeDispatch, settings: Settings, production_message: str) -> None:
    if not dispatch.delivered and settings.is_production:
        raise InternalError(production_message)


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(throttle("strict"))],
)
def signup(
    payload: SignupRequest,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> SignupResponse:
    result = ensure_success(auth_service.signup(payload.email, payload.password, payload.name))
    dispatch = result.value
    _check_delivery(dispatch, settings, SIGNUP_DELIVERY_FAILED)
    message = result.message
    if not dispatch.delivered:
        message = "Account created successfully (email delivery failed in development)."
    return SignupResponse(
        message=message,
        account_id=dispatch.account.id,
        email=dispatch.account.email,
        dev_verification_code=dispatch.code,
    )


@router.post(
    "/verify-email",
    response_model=MessageResponse,
    dependencies=[Depends(throttle("verification"))],
)
def verify_email(
    payload: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    result = ensure_success(auth_service.verify_email(payload.email, payload.code))
    return MessageResponse(message=result.message)


@router.post(
    "/signin",
    response_model=SigninResponse,
    dependencies=[Depends(throttle("strict"))],
)
def signin(
    payload: SigninRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> SigninResponse:
    result = ensure_success(auth_service.signin(payload.email, payload.password))
    return SigninResponse(
        message=result.message,
        access_token=result.value.token,
        account=AccountResponse.from_account(result.value.account),
    )


@router.post(
    "/resend-verification",
    response_model=ResendVerificationResponse,
    dependencies=[Depends(throttle("verification"))],
)
def resend_verification(
    payload: EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> ResendVerificationResponse:
    outcome = auth_service.resend_verification(payload.email)
    if isinstance(outcome, Failure) and outcome.kind in (
        FailureKind.NOT_FOUND,
        FailureKind.ALREADY_VERIFIED,
    ):
        # Unknown and already-verified emails must look the same from outside.
        raise ValidationError(outcome.message)
    result = ensure_success(outcome)
    _check_delivery(result.value, settings, RESEND_DELIVERY_FAILED)
    return ResendVerificationResponse(
        message=result.message,
        dev_verification_code=result.value.code,
    )


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    dependencies=[Depends(throttle("strict"))],
)
def forgot_password(
    payload: EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    result = auth_service.forgot_password(payload.email)
    return MessageResponse(message=result.message)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    dependencies=[Depends(throttle("strict"))],
)
def reset_password(
    payload: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    result = ensure_success(
        auth_service.reset_password(payload.email, payload.code, payload.new_password)
    )
    return MessageResponse(message=result.message)


@router.post("/logout", response_model=MessageResponse)
def logout(auth_service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    return MessageResponse(message=auth_service.logout().message)


# Development-only helpers -----------------------------------------------------
@router.post("/dev/verify-email", response_model=MessageResponse, include_in_schema=False)
def dev_verify_email(
    payload: EmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    if settings.is_production:
        raise NotFoundError("Endpoint not found")
    result = ensure_success(auth_service.force_verify_email(payload.email))
    return MessageResponse(message=result.message)


@router.post("/dev/reset-password", response_model=MessageResponse, include_in_schema=False)
def dev_reset_password(
    payload: DevResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    if settings.is_production:
        raise NotFoundError("Endpoint not found")
    result = ensure_success(auth_service.force_reset_password(payload.email, payload.new_password))
    return MessageResponse(message=result.message)
