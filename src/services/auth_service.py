"""Session lifecycle: register, login, refresh, logout and password changes."""

from typing import Optional, Tuple
from uuid import UUID

import structlog

from src.models.auth import TokenPair
from src.models.user import User, UserPublic
from src.services.errors import (
    AlreadyExistsError,
    DuplicateKeyError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    MissingFieldError,
    NotFoundError,
    TokenError,
)
from src.services.password_service import burn_verify, verify_password
from src.services.todo_service import TodoService
from src.services.token_service import REFRESH_TOKEN_TYPE, TokenService
from src.services.user_service import UserService

logger = structlog.get_logger(__name__)


def _require(**fields: Optional[str]) -> None:
    """Raise MissingFieldError naming every empty field."""
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise MissingFieldError(
            f"{', '.join(fields)} are required",
            errors=[f"{name} is required" for name in missing],
        )


class AuthService:
    """Orchestrates the credential store and token service.

    Every successful register/login records the new refresh token on the
    user and stamps last-login before returning. Refresh rotates: the
    presented token is swapped for the new one in a single store operation.
    """

    def __init__(self):
        self.user_service = UserService()
        self.token_service = TokenService()

    async def _start_session(self, user: User) -> Tuple[UserPublic, TokenPair]:
        tokens = self.token_service.issue_pair(user)
        last_login = await self.user_service.add_refresh_token(user.id, tokens.refresh_token)
        user = user.model_copy(update={"last_login": last_login})
        return UserPublic.from_user(user), tokens

    async def register(
        self,
        handle: Optional[str],
        email: Optional[str],
        password: Optional[str],
        display_name: Optional[str] = None,
    ) -> Tuple[UserPublic, TokenPair]:
        """Create an account and start its first session.

        Raises:
            MissingFieldError: handle, email or password absent
            ValidationError: a field violates its format constraints
            AlreadyExistsError: handle or email already taken
        """
        _require(handle=handle, email=email, password=password)

        try:
            user = await self.user_service.create_user(
                handle=handle,
                email=email,
                password=password,
                display_name=display_name,
            )
        except DuplicateKeyError as e:
            logger.warning("registration_duplicate", field=e.field)
            raise AlreadyExistsError(e.field)

        logger.info("user_registered", user_id=str(user.id), handle=user.handle)
        return await self._start_session(user)

    async def login(
        self, identifier: Optional[str], password: Optional[str]
    ) -> Tuple[UserPublic, TokenPair]:
        """Authenticate by handle or email.

        Unknown identifier, inactive account and wrong password all raise
        the same InvalidCredentialsError so callers cannot tell them apart.
        """
        _require(identifier=identifier, password=password)

        result = await self.user_service.get_by_identifier(identifier)
        if result is None:
            burn_verify(password)
            logger.warning("login_failed", reason="unknown_identifier")
            raise InvalidCredentialsError()

        user, password_hash = result

        if not user.is_active:
            burn_verify(password)
            logger.warning("login_failed", reason="inactive", user_id=str(user.id))
            raise InvalidCredentialsError()

        if not verify_password(password, password_hash):
            logger.warning("login_failed", reason="bad_password", user_id=str(user.id))
            raise InvalidCredentialsError()

        logger.info("user_logged_in", user_id=str(user.id), handle=user.handle)
        return await self._start_session(user)

    async def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        """Exchange a refresh token for a new pair, revoking the old token.

        Raises:
            MissingFieldError: no token supplied
            InvalidRefreshTokenError: token fails verification, belongs to a
                missing or inactive user, or is no longer on the user's list
        """
        _require(refreshToken=refresh_token)

        try:
            claims = self.token_service.verify(refresh_token, expect_refresh=True)
        except TokenError as e:
            logger.warning("refresh_rejected", reason=type(e).__name__)
            raise InvalidRefreshTokenError()

        if claims.get("type") != REFRESH_TOKEN_TYPE:
            logger.warning("refresh_rejected", reason="wrong_token_type")
            raise InvalidRefreshTokenError()

        try:
            user_id = UUID(str(claims["sub"]))
        except ValueError:
            raise InvalidRefreshTokenError()

        user = await self.user_service.get_by_id(user_id)
        if user is None or not user.is_active:
            logger.warning("refresh_rejected", reason="user_unavailable", user_id=str(user_id))
            raise InvalidRefreshTokenError()

        tokens = self.token_service.issue_pair(user)
        rotated = await self.user_service.rotate_refresh_token(
            user.id, refresh_token, tokens.refresh_token
        )
        if not rotated:
            logger.warning("refresh_rejected", reason="revoked", user_id=str(user.id))
            raise InvalidRefreshTokenError()

        return tokens

    async def logout(self, user: User, refresh_token: Optional[str] = None) -> None:
        """End one session (token given) or every session (token omitted)."""
        if refresh_token:
            await self.user_service.remove_refresh_token(user.id, refresh_token)
            logger.info("user_logged_out", user_id=str(user.id), scope="device")
        else:
            await self.user_service.clear_refresh_tokens(user.id)
            logger.info("user_logged_out", user_id=str(user.id), scope="all")

    async def change_password(
        self,
        user: User,
        current_password: Optional[str],
        new_password: Optional[str],
    ) -> None:
        """Replace the password and revoke every refresh token.

        Raises:
            MissingFieldError: either password absent
            InvalidCredentialsError: current password does not match (400)
            ValidationError: new password violates the length rule
        """
        _require(currentPassword=current_password, newPassword=new_password)

        password_hash = await self.user_service.get_password_hash(user.id)
        if not password_hash or not verify_password(current_password, password_hash):
            logger.warning("password_change_rejected", user_id=str(user.id))
            raise InvalidCredentialsError(
                "Current password is incorrect", status_code=400
            )

        await self.user_service.update_user(
            user.id, password=new_password, revoke_sessions=True
        )
        logger.info("password_changed", user_id=str(user.id))

    async def update_profile(
        self,
        user: User,
        handle: Optional[str] = None,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> UserPublic:
        """Update profile fields; credentials and role are not touched here."""
        updated = await self.user_service.update_user(
            user.id,
            handle=handle,
            email=email,
            display_name=display_name,
            avatar=avatar,
        )
        if updated is None:
            raise NotFoundError("User not found")
        return UserPublic.from_user(updated)

    async def get_profile(self, user: User) -> UserPublic:
        """Safe view of the user with their todo count."""
        todo_count = await TodoService().count_todos(user.id)
        return UserPublic.from_user(user, todo_count=todo_count)
