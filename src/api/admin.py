"""Admin API endpoints for user management."""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import structlog

from src.api.dependencies import require_admin
from src.api.responses import success_response
from src.models.auth import AdminUpdateUserRequest
from src.models.user import User, UserPublic
from src.services.errors import NotFoundError, ValidationError
from src.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/users")
async def list_users(admin: User = Depends(require_admin)) -> JSONResponse:
    """List all users (admin only), ordered by creation date."""
    users = await UserService().list_users()
    return success_response(
        data=[UserPublic.from_user(u).to_response() for u in users],
        count=len(users),
    )


@router.patch("/users/{user_id}")
async def update_user(
    user_id: UUID,
    request: AdminUpdateUserRequest,
    admin: User = Depends(require_admin),
) -> JSONResponse:
    """Activate/deactivate a user or change their role (admin only).

    Deactivating a user also revokes their refresh tokens.

    Raises:
        400: If an admin tries to deactivate or demote themselves
        404: If the user does not exist
    """
    if user_id == admin.id and (
        request.is_active is False or (request.role and request.role != "admin")
    ):
        raise ValidationError("Admins cannot deactivate or demote themselves")

    user_service = UserService()
    user = await user_service.update_user(
        user_id,
        is_active=request.is_active,
        role=request.role,
    )

    if user is None:
        raise NotFoundError("User not found")

    if request.is_active is False:
        await user_service.clear_refresh_tokens(user_id)

    logger.info(
        "admin_updated_user",
        admin_id=str(admin.id),
        user_id=str(user_id),
        is_active=request.is_active,
        role=request.role,
    )
    return success_response(
        data={"user": UserPublic.from_user(user).to_response()},
        message="User updated",
    )
