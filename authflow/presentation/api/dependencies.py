from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...application.services.auth_service import AuthService
from ...core.dependencies import get_auth_service
from ...core.exceptions import AuthenticationError
from ...domain.models import Account
from .errors import ensure_success

_bearer_scheme = HTTPBearer(auto_error=False)


def require_account(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> Account:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Access denied. No authentication token provided.")
    return ensure_success(auth_service.authenticate(credentials.credentials)).value
