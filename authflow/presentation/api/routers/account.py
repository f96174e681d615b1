import time

from fastapi import APIRouter, Depends

from ....application.services.auth_service import AuthService
from ....core.container import ApplicationContainer
from ....core.dependencies import get_auth_service, get_container
from ....domain.models import Account
from ...api.dependencies import require_account
from ...api.errors import ensure_success
from ...api.schemas.account import (
    AccountEnvelope,
    AccountResponse,
    AccountStats,
    AccountStatsResponse,
    DetailedHealthResponse,
    HealthAccount,
    HealthServices,
    UpdateProfileRequest,
    UpdateProfileResponse,
)
from ...api.schemas.auth import MessageResponse

router = APIRouter(prefix="/api", tags=["Account"])


@router.get("/me", response_model=AccountEnvelope)
def get_profile(account: Account = Depends(require_account)) -> AccountEnvelope:
    return AccountEnvelope(account=AccountResponse.from_account(account))


@router.put("/me", response_model=UpdateProfileResponse)
def update_profile(
    payload: UpdateProfileRequest,
    account: Account = Depends(require_account),
    auth_service: AuthService = Depends(get_auth_service),
) -> UpdateProfileResponse:
    changes = {}
    if "name" in payload.model_fields_set:
        changes["display_name"] = payload.name
    if payload.profile is not None:
        changes["first_name"] = payload.profile.first_name
        changes["last_name"] = payload.profile.last_name
        changes["avatar_url"] = payload.profile.avatar_url

    result = ensure_success(auth_service.update_profile(account.id, **changes))
    return UpdateProfileResponse(
        message=result.message,
        account=AccountResponse.from_account(result.value),
    )


@router.delete("/me", response_model=MessageResponse)
def deactivate_account(
    account: Account = Depends(require_account),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    result = ensure_success(auth_service.deactivate(account.id))
    return MessageResponse(message=result.message)


@router.get("/account/stats", response_model=AccountStatsResponse)
def account_stats(
    account: Account = Depends(require_account),
    auth_service: AuthService = Depends(get_auth_service),
) -> AccountStatsResponse:
    result = ensure_success(auth_service.account_stats(account.id))
    return AccountStatsResponse(stats=AccountStats(**result.value))


@router.get("/health/detailed", response_model=DetailedHealthResponse)
def detailed_health(
    account: Account = Depends(require_account),
    container: ApplicationContainer = Depends(get_container),
) -> DetailedHealthResponse:
    return DetailedHealthResponse(
        timestamp=container.clock.now(),
        uptime_seconds=round(time.monotonic() - container.started_at, 3),
        account=HealthAccount(id=account.id, email=account.email),
        services=HealthServices(
            database=container.store.health_check(),
            email={"enabled": bool(getattr(container.mailer, "enabled", True))},
        ),
        environment=container.settings.environment,
    )
