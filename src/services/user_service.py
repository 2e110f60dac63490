"""Credential store: user records and their refresh-token lists."""

import json
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Tuple
from uuid import UUID, uuid4

import asyncpg
import structlog

from src.config import get_settings
from src.database import get_pool
from src.models.user import RefreshTokenRecord, User, UserRole
from src.services.errors import DuplicateKeyError, ValidationError
from src.services.password_service import PASSWORD_MAX_BYTES, hash_password
from src.services.token_service import parse_duration

logger = structlog.get_logger(__name__)

HANDLE_RE = re.compile(r"^[a-zA-Z0-9_]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
HANDLE_MIN_LENGTH = 3
HANDLE_MAX_LENGTH = 20
PASSWORD_MIN_LENGTH = 6
DISPLAY_NAME_MAX_LENGTH = 50

USER_COLUMNS = (
    "id, handle, email, display_name, avatar, role, is_active, last_login, "
    "refresh_tokens, created_at, updated_at"
)

_UNIQUE_CONSTRAINT_FIELDS = {
    "users_handle_key": "handle",
    "users_email_key": "email",
}

_UNSET: Any = object()


def validate_user_fields(
    handle: Any = _UNSET,
    email: Any = _UNSET,
    password: Any = _UNSET,
    display_name: Any = _UNSET,
) -> List[str]:
    """Check field constraints, returning one message per violation.

    Only fields that are passed are checked, so the same rules apply to
    creation (all fields) and partial updates.
    """
    errors: List[str] = []

    if handle is not _UNSET:
        if not handle:
            errors.append("Handle is required")
        elif len(handle) < HANDLE_MIN_LENGTH:
            errors.append(f"Handle must be at least {HANDLE_MIN_LENGTH} characters")
        elif len(handle) > HANDLE_MAX_LENGTH:
            errors.append(f"Handle must be at most {HANDLE_MAX_LENGTH} characters")
        elif not HANDLE_RE.match(handle):
            errors.append(
                "Handle may only contain letters, digits and underscores"
            )

    if email is not _UNSET:
        if not email:
            errors.append("Email is required")
        elif not EMAIL_RE.match(email):
            errors.append("Email is not valid")

    if password is not _UNSET:
        if not password:
            errors.append("Password is required")
        elif len(password) < PASSWORD_MIN_LENGTH:
            errors.append(
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
            )
        elif len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
            errors.append(
                f"Password must be at most {PASSWORD_MAX_BYTES} bytes"
            )

    if display_name is not _UNSET and display_name is not None:
        if len(display_name) > DISPLAY_NAME_MAX_LENGTH:
            errors.append(
                f"Display name must be at most {DISPLAY_NAME_MAX_LENGTH} characters"
            )

    return errors


def prune_expired_tokens(
    records: List[RefreshTokenRecord], now: datetime, ttl: timedelta
) -> List[RefreshTokenRecord]:
    """Drop records issued more than ``ttl`` ago."""
    return [r for r in records if r.created_at + ttl > now]


def append_refresh_token(
    records: List[RefreshTokenRecord], token: str, now: datetime, limit: int
) -> List[RefreshTokenRecord]:
    """Append a record, evicting the oldest ones so at most ``limit`` remain."""
    updated = records + [RefreshTokenRecord(token=token, created_at=now)]
    return updated[-limit:]


def _load_tokens(raw: Any) -> List[RefreshTokenRecord]:
    if raw is None:
        return []
    data = json.loads(raw) if isinstance(raw, str) else raw
    return [RefreshTokenRecord.model_validate(item) for item in data]


def _dump_tokens(records: List[RefreshTokenRecord]) -> str:
    return json.dumps([r.model_dump(mode="json") for r in records])


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        handle=row["handle"],
        email=row["email"],
        display_name=row["display_name"],
        avatar=row["avatar"],
        role=row["role"],
        is_active=row["is_active"],
        last_login=row["last_login"],
        refresh_tokens=_load_tokens(row["refresh_tokens"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _duplicate_key_error(exc: asyncpg.UniqueViolationError) -> DuplicateKeyError:
    constraint = getattr(exc, "constraint_name", None) or ""
    field = _UNIQUE_CONSTRAINT_FIELDS.get(constraint, "value")
    return DuplicateKeyError(field)


class UserService:
    """Service for user CRUD and refresh-token bookkeeping.

    Every mutation is a single row-level read-modify-write that is
    persisted before the method returns.
    """

    def __init__(self):
        self.settings = get_settings()
        self.refresh_ttl = parse_duration(self.settings.jwt_refresh_expire)

    async def create_user(
        self,
        handle: str,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        role: UserRole = UserRole.USER,
    ) -> User:
        """Create a new user with a hashed password.

        Args:
            handle: Unique handle (3-20 chars, letters/digits/underscore)
            email: Unique email (normalized to lowercase)
            password: Plain-text password (will be hashed)
            display_name: Optional display name
            role: Account role

        Returns:
            Created User model

        Raises:
            ValidationError: If any field violates its constraints
            DuplicateKeyError: If the handle or email is already taken
        """
        handle = (handle or "").strip()
        email = (email or "").strip().lower()
        display_name = display_name.strip() if display_name else None

        errors = validate_user_fields(
            handle=handle,
            email=email,
            password=password,
            display_name=display_name,
        )
        if errors:
            raise ValidationError("Invalid data", errors=errors)

        user_id = uuid4()
        now = datetime.now(timezone.utc)
        password_hash = hash_password(password)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (id, handle, email, password_hash, display_name, role, is_active, refresh_tokens, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, TRUE, '[]'::jsonb, $7, $8)
                    RETURNING {USER_COLUMNS}
                    """,
                    user_id,
                    handle,
                    email,
                    password_hash,
                    display_name,
                    UserRole(role).value,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError as e:
            raise _duplicate_key_error(e)

        logger.info(
            "user_created",
            user_id=str(user_id),
            handle=handle,
            role=UserRole(role).value,
        )
        return _row_to_user(row)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by UUID, or None if not found."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None
        return _row_to_user(row)

    async def get_by_identifier(self, identifier: str) -> Optional[Tuple[User, str]]:
        """Get a user by handle or email, together with the password hash.

        Args:
            identifier: Handle (exact) or email (case-insensitive)

        Returns:
            Tuple of (User, password_hash) or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}, password_hash
                FROM users
                WHERE email = $1 OR handle = $2
                LIMIT 1
                """,
                identifier.strip().lower(),
                identifier.strip(),
            )

        if row is None:
            return None
        return _row_to_user(row), row["password_hash"]

    async def get_password_hash(self, user_id: UUID) -> Optional[str]:
        """Get the stored password hash for a user."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT password_hash FROM users WHERE id = $1",
                user_id,
            )

    async def list_users(self) -> List[User]:
        """Return all users ordered by creation date."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at ASC"
            )

        return [_row_to_user(row) for row in rows]

    async def find_existing_admin(self, handle: str, email: str) -> Optional[User]:
        """Return any admin, or the account already holding ``handle`` or ``email``."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE role = $1 OR email = $2 OR handle = $3
                ORDER BY (role = $1) DESC, created_at ASC
                LIMIT 1
                """,
                UserRole.ADMIN.value,
                email.strip().lower(),
                handle.strip(),
            )

        if row is None:
            return None
        return _row_to_user(row)

    async def update_user(
        self,
        user_id: UUID,
        handle: Optional[str] = None,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        avatar: Optional[str] = None,
        password: Optional[str] = None,
        is_active: Optional[bool] = None,
        role: Optional[UserRole] = None,
        revoke_sessions: bool = False,
    ) -> Optional[User]:
        """Update user fields that are not None.

        Setting ``password`` stores a fresh hash; the plain text is never
        persisted. ``revoke_sessions`` empties the refresh-token list in the
        same UPDATE.

        Returns:
            Updated User model, or None if user not found

        Raises:
            ValidationError: If a provided field violates its constraints
            DuplicateKeyError: If the new handle or email is already taken
        """
        checks = {}
        if handle is not None:
            handle = handle.strip()
            checks["handle"] = handle
        if email is not None:
            email = email.strip().lower()
            checks["email"] = email
        if display_name is not None:
            display_name = display_name.strip()
            checks["display_name"] = display_name
        if password is not None:
            checks["password"] = password

        errors = validate_user_fields(**checks)
        if role is not None:
            try:
                role = UserRole(role)
            except ValueError:
                errors.append("Role must be one of: user, admin")
        if errors:
            raise ValidationError("Invalid data", errors=errors)

        # Build SET clause dynamically for non-None fields
        set_clauses = []
        params: List[Any] = []

        def _set(column: str, value: Any) -> None:
            params.append(value)
            set_clauses.append(f"{column} = ${len(params)}")

        if handle is not None:
            _set("handle", handle)
        if email is not None:
            _set("email", email)
        if display_name is not None:
            _set("display_name", display_name)
        if avatar is not None:
            _set("avatar", avatar)
        if password is not None:
            _set("password_hash", hash_password(password))
        if is_active is not None:
            _set("is_active", is_active)
        if role is not None:
            _set("role", role.value)
        if revoke_sessions:
            set_clauses.append("refresh_tokens = '[]'::jsonb")

        if not set_clauses:
            return await self.get_by_id(user_id)

        fields_updated = [c.split(" = ")[0] for c in set_clauses]
        _set("updated_at", datetime.now(timezone.utc))
        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${len(params)}
            RETURNING {USER_COLUMNS}
        """

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError as e:
            raise _duplicate_key_error(e)

        if row is None:
            return None

        logger.info("user_updated", user_id=str(user_id), fields_updated=fields_updated)
        return _row_to_user(row)

    async def _modify_refresh_tokens(
        self,
        user_id: UUID,
        mutate: Callable[[List[RefreshTokenRecord]], Tuple[List[RefreshTokenRecord], bool]],
        now: Optional[datetime] = None,
        stamp_login: bool = False,
    ) -> bool:
        """Lock the user row, apply ``mutate`` to its live tokens, and save.

        ``mutate`` returns the new list and a flag; the flag is returned to
        the caller. Expired records are pruned before ``mutate`` sees them.
        Returns False without writing if the user does not exist or the
        flag is False. With ``stamp_login`` the same UPDATE also sets
        last_login to ``now``.
        """
        now = now or datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "SELECT refresh_tokens FROM users WHERE id = $1 FOR UPDATE",
                    user_id,
                )
                if row is None:
                    return False

                records = prune_expired_tokens(
                    _load_tokens(row["refresh_tokens"]), now, self.refresh_ttl
                )
                records, changed = mutate(records)
                if not changed:
                    return False

                login_clause = ", last_login = $2" if stamp_login else ""
                await conn.execute(
                    "UPDATE users SET refresh_tokens = $1::jsonb, updated_at = $2"
                    f"{login_clause} WHERE id = $3",
                    _dump_tokens(records),
                    now,
                    user_id,
                )
        return True

    async def add_refresh_token(self, user_id: UUID, token: str) -> datetime:
        """Record a newly issued refresh token and stamp last-login.

        Both land in one UPDATE. The oldest tokens past the limit are
        evicted. Returns the last-login timestamp that was written.
        """
        now = datetime.now(timezone.utc)
        limit = self.settings.max_refresh_tokens

        await self._modify_refresh_tokens(
            user_id,
            lambda records: (append_refresh_token(records, token, now, limit), True),
            now=now,
            stamp_login=True,
        )
        logger.info("refresh_token_added", user_id=str(user_id))
        return now

    async def remove_refresh_token(self, user_id: UUID, token: str) -> bool:
        """Remove one refresh token. Returns True if it was present."""

        def _remove(records):
            kept = [r for r in records if r.token != token]
            return kept, len(kept) != len(records)

        removed = await self._modify_refresh_tokens(user_id, _remove)
        logger.info("refresh_token_removed", user_id=str(user_id), removed=removed)
        return removed

    async def clear_refresh_tokens(self, user_id: UUID) -> None:
        """Drop every refresh token, ending all sessions for the user."""
        await self._modify_refresh_tokens(user_id, lambda records: ([], True))
        logger.info("all_refresh_tokens_cleared", user_id=str(user_id))

    async def rotate_refresh_token(
        self, user_id: UUID, old_token: str, new_token: str
    ) -> bool:
        """Atomically replace ``old_token`` with ``new_token``.

        Returns False, and stores nothing, if ``old_token`` is not in the
        user's live list. Concurrent rotations of the same token are
        serialized by the row lock, so only one of them succeeds.
        """
        now = datetime.now(timezone.utc)
        limit = self.settings.max_refresh_tokens

        def _rotate(records):
            if not any(r.token == old_token for r in records):
                return records, False
            kept = [r for r in records if r.token != old_token]
            return append_refresh_token(kept, new_token, now, limit), True

        rotated = await self._modify_refresh_tokens(user_id, _rotate)
        if rotated:
            logger.info("refresh_token_rotated", user_id=str(user_id))
        else:
            logger.warning("refresh_token_rotation_rejected", user_id=str(user_id))
        return rotated
