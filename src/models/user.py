"""User and refresh-token models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    """Flat two-value role used by role-gated routes."""

    USER = "user"
    ADMIN = "admin"


class RefreshTokenRecord(BaseModel):
    """An outstanding refresh token stored on its owning user."""

    token: str
    created_at: datetime


class User(BaseModel):
    """A registered account, as held in the credential store.

    The password hash is never part of this model; it is fetched separately
    by ``UserService.get_by_identifier`` / ``get_password_hash``.
    """

    id: UUID
    handle: str
    email: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    role: UserRole = UserRole.USER
    is_active: bool = True
    last_login: Optional[datetime] = None
    refresh_tokens: List[RefreshTokenRecord] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class UserPublic(BaseModel):
    """Safe user view returned to clients.

    Only lists fields that may leave the server: no password hash and no
    refresh-token list.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    handle: str
    email: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    todo_count: Optional[int] = None

    @classmethod
    def from_user(cls, user: User, todo_count: Optional[int] = None) -> "UserPublic":
        """Build the safe view from a stored user."""
        return cls(
            id=user.id,
            handle=user.handle,
            email=user.email,
            display_name=user.display_name,
            avatar=user.avatar,
            role=user.role,
            is_active=user.is_active,
            last_login=user.last_login,
            created_at=user.created_at,
            updated_at=user.updated_at,
            todo_count=todo_count,
        )

    def to_response(self) -> dict:
        """Serialize with camelCase keys, omitting todoCount when unknown."""
        exclude = {"todo_count"} if self.todo_count is None else set()
        return self.model_dump(by_alias=True, mode="json", exclude=exclude)
