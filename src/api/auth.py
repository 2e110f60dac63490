"""Authentication API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from src.api.dependencies import get_current_user
from src.api.responses import success_response
from src.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from src.models.user import User
from src.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest) -> JSONResponse:
    """Register a new account.

    Returns:
        201 with ``data.user`` (safe view) and ``data.tokens``

    Raises:
        400: Missing fields, invalid format, or handle/email already in use
    """
    user, tokens = await AuthService().register(
        handle=request.handle,
        email=request.email,
        password=request.password,
        display_name=request.display_name,
    )
    return success_response(
        data={"user": user.to_response(), "tokens": tokens.to_response()},
        message="Registration successful",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/login")
async def login(request: LoginRequest) -> JSONResponse:
    """Login with handle or email and password.

    Raises:
        401: Identical response for unknown user, inactive account, or
            wrong password
    """
    user, tokens = await AuthService().login(request.identifier, request.password)
    return success_response(
        data={"user": user.to_response(), "tokens": tokens.to_response()},
        message="Login successful",
    )


@router.post("/refresh")
async def refresh(request: RefreshRequest) -> JSONResponse:
    """Exchange a refresh token for a new pair.

    The presented refresh token is revoked; replaying it fails with 401.
    """
    tokens = await AuthService().refresh(request.refresh_token)
    return success_response(
        data={"tokens": tokens.to_response()},
        message="Token refreshed",
    )


@router.post("/logout")
async def logout(
    request: Optional[LogoutRequest] = None,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Logout this device (refreshToken given) or every device (omitted)."""
    refresh_token = request.refresh_token if request else None
    await AuthService().logout(current_user, refresh_token)
    return success_response(message="Logout successful")


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Current user's safe view, including their todo count."""
    user = await AuthService().get_profile(current_user)
    return success_response(data={"user": user.to_response()})


@router.put("/profile")
async def update_profile(
    request: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Update display name, email, handle or avatar."""
    user = await AuthService().update_profile(
        current_user,
        handle=request.handle,
        email=request.email,
        display_name=request.display_name,
        avatar=request.avatar,
    )
    return success_response(
        data={"user": user.to_response()},
        message="Profile updated",
    )


@router.put("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Change password and sign out every session."""
    await AuthService().change_password(
        current_user,
        current_password=request.current_password,
        new_password=request.new_password,
    )
    return success_response(
        message="Password changed. Please log in again.",
    )
