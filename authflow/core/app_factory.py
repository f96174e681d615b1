from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import DEFAULT_JWT_SECRET, Settings
from .container import ApplicationContainer
from .exceptions import AuthflowError, RateLimitError
from .logging import configure_logging
from ..application.services.auth_service import AuthService
from ..application.services.code_issuer import CodeIssuer
from ..application.services.lock_policy import AccountLockPolicy
from ..application.services.password_hasher import PasswordHasher
from ..application.services.token_issuer import TokenIssuer
from ..domain.ports.clock import Clock
from ..domain.ports.mailer import Mailer
from ..domain.ports.persistence import CredentialStore
from ..infrastructure.clock import SystemClock
from ..infrastructure.persistence.sqlite import SQLiteCredentialStore
from ..presentation.api.routers import account as account_router
from ..presentation.api.routers import auth as auth_router
from ..presentation.api.throttle import build_throttles
from ..services.code_janitor import CodeJanitor
from ..services.email_service import EmailService

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    *,
    clock: Optional[Clock] = None,
    mailer: Optional[Mailer] = None,
    store: Optional[CredentialStore] = None,
) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(
        title="Authflow",
        lifespan=_create_lifespan(settings, clock=clock, mailer=mailer, store=store),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuthflowError)
    async def authflow_exception_handler(request: Request, exc: AuthflowError) -> JSONResponse:
        """Render business errors as ``{"success": false, "error": {...}}``."""
        headers = None
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": {"code": exc.code, "message": exc.message}},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        error: Dict[str, Any] = {"code": "VALIDATION_ERROR", "message": "Invalid input format"}
        if not settings.is_production:
            error["details"] = [
                {"loc": list(item.get("loc", ())), "msg": item.get("msg"), "type": item.get("type")}
                for item in exc.errors()
            ]
        return JSONResponse(status_code=400, content={"success": False, "error": error})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = "Internal server error" if settings.is_production else str(exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": {"code": "INTERNAL_ERROR", "message": message}},
        )

    app.include_router(auth_router.router)
    app.include_router(account_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        container: ApplicationContainer = app.state.container  # type: ignore[attr-defined]
        return {
            "ok": True,
            "environment": settings.environment,
            "mailer_enabled": bool(getattr(container.mailer, "enabled", True)),
        }

    return app


def build_container(
    settings: Settings,
    *,
    clock: Optional[Clock] = None,
    mailer: Optional[Mailer] = None,
    store: Optional[CredentialStore] = None,
) -> ApplicationContainer:
    """Wire the services for ``settings``; explicit arguments replace the defaults."""
    clock = clock or SystemClock()
    store = store or SQLiteCredentialStore(settings.database_path, clock=clock)
    mailer = mailer or EmailService(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_username=settings.smtp_username,
        smtp_password=settings.smtp_password,
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
    )
    auth_service = AuthService(
        store=store,
        codes=CodeIssuer(clock, length=settings.code_length, ttl_minutes=settings.code_expires_minutes),
        passwords=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=TokenIssuer(
            settings.jwt_secret,
            clock,
            expiration_days=settings.jwt_expires_days,
            algorithm=settings.jwt_algorithm,
        ),
        lock_policy=AccountLockPolicy(
            clock,
            max_attempts=settings.login_max_attempts,
            lock_minutes=settings.lock_minutes,
        ),
        mailer=mailer,
        clock=clock,
        expose_codes=not settings.is_production,
    )
    return ApplicationContainer(
        settings=settings,
        clock=clock,
        store=store,
        mailer=mailer,
        auth_service=auth_service,
        janitor=CodeJanitor(auth_service, interval_seconds=settings.code_purge_interval_seconds),
        throttles=build_throttles(settings.throttle_enabled and not settings.is_development),
    )


def _create_lifespan(
    settings: Settings,
    *,
    clock: Optional[Clock],
    mailer: Optional[Mailer],
    store: Optional[CredentialStore],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        if settings.jwt_secret == DEFAULT_JWT_SECRET:
            logger.warning("JWT_SECRET is not set; using the insecure development default.")

        container = build_container(settings, clock=clock, mailer=mailer, store=store)
        if not getattr(container.mailer, "enabled", True):
            logger.warning("SMTP is not configured; verification and reset emails will not be sent.")

        app.state.container = container  # type: ignore[attr-defined]

        await container.janitor.start()
        logger.info("Authflow started (environment=%s).", settings.environment)

        try:
            yield
        finally:
            await container.janitor.stop()
            container.store.close()

    return lifespan
