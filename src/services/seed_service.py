"""Startup seeding of the first admin account."""

from typing import Optional

import structlog

from src.config import get_settings
from src.models.user import User, UserRole
from src.services.errors import DuplicateKeyError
from src.services.user_service import UserService

logger = structlog.get_logger(__name__)


async def seed_admin_user(user_service: Optional[UserService] = None) -> Optional[User]:
    """Create the configured admin account unless one already exists.

    Does nothing when ADMIN_EMAIL or ADMIN_PASSWORD is unset. Safe to run on
    every startup: an existing admin, or an account already holding the
    admin handle or email, is returned untouched.

    Returns:
        The admin (new or existing), the conflicting account, or None when
        seeding is not configured or another process won the insert
    """
    settings = get_settings()
    if not settings.admin_email or not settings.admin_password:
        logger.info("admin_seed_skipped", reason="not_configured")
        return None

    user_service = user_service or UserService()

    existing = await user_service.find_existing_admin(
        settings.admin_handle, settings.admin_email
    )
    if existing is not None:
        if existing.role != UserRole.ADMIN:
            logger.warning(
                "admin_seed_conflict",
                user_id=str(existing.id),
                handle=existing.handle,
            )
        else:
            logger.info("admin_seed_exists", user_id=str(existing.id))
        return existing

    try:
        admin = await user_service.create_user(
            handle=settings.admin_handle,
            email=settings.admin_email,
            password=settings.admin_password,
            display_name=settings.admin_display_name,
            role=UserRole.ADMIN,
        )
    except DuplicateKeyError as e:
        # Another worker inserted it between the lookup and the insert
        logger.info("admin_seed_raced", field=e.field)
        return None

    logger.info("admin_seeded", user_id=str(admin.id), handle=admin.handle)
    return admin
