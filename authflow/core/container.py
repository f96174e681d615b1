import time
from dataclasses import dataclass, field
from typing import Dict

from ..application.services.auth_service import AuthService
from ..domain.ports.clock import Clock
from ..domain.ports.mailer import Mailer
from ..domain.ports.persistence import CredentialStore
from ..presentation.api.throttle import RequestThrottle
from ..services.code_janitor import CodeJanitor
from .config import Settings


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    clock: Clock
    store: CredentialStore
    mailer: Mailer
    auth_service: AuthService
    janitor: CodeJanitor
    throttles: Dict[str, RequestThrottle]
    started_at: float = field(default_factory=time.monotonic)
