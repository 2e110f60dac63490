"""Auth request and response models.

Request fields are optional at the schema level so that missing values reach
``AuthService`` and are reported as ``MissingFieldError`` with the standard
envelope. Format rules (handle pattern, email shape, password length) are
enforced by ``UserService`` when the record is written.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(_CamelModel):
    """New account registration.

    Attributes:
        handle: Unique handle (also accepted as ``username``)
        email: Email address
        password: Plain-text password
        display_name: Optional display name (also accepted as ``fullName``)
    """

    handle: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("handle", "username")
    )
    email: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("displayName", "display_name", "fullName"),
    )


class LoginRequest(_CamelModel):
    """Login credentials. ``identifier`` is a handle or an email."""

    identifier: Optional[str] = None
    password: Optional[str] = None


class RefreshRequest(_CamelModel):
    """Request to exchange a refresh token for a new token pair."""

    refresh_token: Optional[str] = None


class LogoutRequest(_CamelModel):
    """Logout body. Omitting ``refresh_token`` logs out every device."""

    refresh_token: Optional[str] = None


class UpdateProfileRequest(_CamelModel):
    """Profile update. Only provided fields are changed."""

    handle: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("handle", "username")
    )
    email: Optional[str] = None
    display_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("displayName", "display_name", "fullName"),
    )
    avatar: Optional[str] = None


class ChangePasswordRequest(_CamelModel):
    """Password change for the authenticated user."""

    current_password: Optional[str] = None
    new_password: Optional[str] = None


class TokenPair(_CamelModel):
    """Access/refresh token pair issued on register, login and refresh.

    Attributes:
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived JWT exchanged for a new pair
        expires_in: Access token lifetime label (e.g. "15m")
    """

    access_token: str
    refresh_token: str
    expires_in: str

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)


class AdminUpdateUserRequest(_CamelModel):
    """Admin request to change a user's role or active flag."""

    is_active: Optional[bool] = None
    role: Optional[str] = None
