"""Authentication dependencies for FastAPI."""

import hmac
from typing import Annotated

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import settings
from core.exceptions import AuthenticationError, AuthorizationError, ErrorCode
from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.auth.provider import AuthenticatedUser

security = HTTPBearer(auto_error=False)

_auth_provider: JWTAuthProvider | None = None


def get_auth_provider() -> JWTAuthProvider:
    """Get or create the auth provider singleton."""
    global _auth_provider
    if _auth_provider is None:
        _auth_provider = JWTAuthProvider()
    return _auth_provider


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None,
        Depends(security),
    ],
    auth_provider: JWTAuthProvider = Depends(get_auth_provider),
) -> AuthenticatedUser:
    """
    Resolve the recipient behind the bearer token.

    Raises:
        AuthenticationError: If no token provided or token is invalid
    """
    if not credentials:
        raise AuthenticationError(
            message="Authorization header required",
            error_code=ErrorCode.UNAUTHORIZED,
        )

    user = await auth_provider.validate_token(credentials.credentials)
    if not user:
        raise AuthenticationError(
            message="Invalid or expired token",
            error_code=ErrorCode.INVALID_TOKEN,
        )

    return user


def get_service_api_key() -> str:
    """Configured producer key. Overridable in tests."""
    return settings.service_api_key


async def require_service_key(
    x_service_key: Annotated[str | None, Header()] = None,
    expected: str = Depends(get_service_api_key),
) -> None:
    """Guard for event producer endpoints.

    Raises:
        AuthorizationError: If the key is missing, wrong, or not configured
    """
    if not expected or not x_service_key or not hmac.compare_digest(x_service_key, expected):
        raise AuthorizationError(
            message="Invalid or missing service key",
            error_code=ErrorCode.INVALID_SERVICE_KEY,
        )


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
ServiceKey = Depends(require_service_key)
