"""FastAPI dependencies for authentication and authorization.

Three variants share :func:`resolve_access_token`:

- :func:`get_current_user` requires a valid access token for an active user.
- :func:`require_roles` additionally checks the user's role.
- :func:`get_optional_user` returns None instead of failing.

On success the user and raw token are stored on ``request.state``.
"""

from typing import Callable, Optional
from uuid import UUID

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.models.user import User, UserRole
from src.services.errors import (
    ForbiddenError,
    TokenExpiredError,
    TokenInvalidError,
    UnauthorizedError,
)
from src.services.token_service import ACCESS_TOKEN_TYPE, TokenService
from src.services.user_service import UserService

logger = structlog.get_logger(__name__)

# auto_error=False so a missing header reaches our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


async def resolve_access_token(token: str) -> User:
    """Verify an access token and load its active user.

    Raises:
        UnauthorizedError: with code TOKEN_EXPIRED, INVALID_TOKEN,
            INVALID_TOKEN_TYPE, USER_NOT_FOUND or USER_INACTIVE
    """
    try:
        payload = TokenService().verify(token)
    except TokenExpiredError:
        raise UnauthorizedError("Access token has expired", code="TOKEN_EXPIRED")
    except TokenInvalidError:
        raise UnauthorizedError("Invalid access token", code="INVALID_TOKEN")

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise UnauthorizedError("Invalid token type", code="INVALID_TOKEN_TYPE")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise UnauthorizedError("Invalid token payload", code="INVALID_TOKEN")

    user = await UserService().get_by_id(user_id)

    if user is None:
        raise UnauthorizedError("User not found", code="USER_NOT_FOUND")

    if not user.is_active:
        raise UnauthorizedError("User account is disabled", code="USER_INACTIVE")

    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    """Extract and validate the current user from a JWT Bearer token.

    Returns:
        Authenticated User model

    Raises:
        UnauthorizedError: If the token is absent, invalid, expired, of the
            wrong type, or names a missing or inactive user
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Access token not provided", code="TOKEN_MISSING")

    try:
        user = await resolve_access_token(credentials.credentials)
    except UnauthorizedError as e:
        logger.warning("access_denied", code=e.code, path=request.url.path)
        raise

    request.state.user = user
    request.state.token = credentials.credentials
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Build a dependency that only admits users whose role is in ``roles``.

    Example:
        ``Depends(require_roles(UserRole.ADMIN))``
    """
    allowed = {UserRole(r) for r in roles}

    async def _require_roles(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(
                "role_denied",
                user_id=str(current_user.id),
                role=current_user.role.value,
            )
            raise ForbiddenError("Access denied")
        return current_user

    return _require_roles


require_admin = require_roles(UserRole.ADMIN)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[User]:
    """Resolve the user if a valid token is present; never fails."""
    if credentials is None or not credentials.credentials:
        return None

    try:
        user = await resolve_access_token(credentials.credentials)
    except UnauthorizedError as e:
        logger.debug("optional_auth_ignored", code=e.code)
        return None
    except Exception as e:
        logger.warning("optional_auth_lookup_failed", error=str(e))
        return None

    request.state.user = user
    request.state.token = credentials.credentials
    return user
