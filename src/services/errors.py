"""Application error hierarchy mapped to HTTP responses.

Every failure a route can report is one of these classes. The exception
handler in ``src.main`` turns them into the standard response envelope::

    {"success": false, "message": ..., "code": ..., "errors": [...]}
"""

from typing import List, Optional


class AppError(Exception):
    """Base class for errors that carry an HTTP status and a stable code."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.errors = list(errors) if errors else []


class ValidationError(AppError):
    """Malformed, missing, or out-of-range input (400)."""

    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid data"


class MissingFieldError(ValidationError):
    """A required field was absent (400)."""

    code = "MISSING_FIELD"
    default_message = "Required fields are missing"


class DuplicateKeyError(AppError):
    """A uniqueness constraint was violated (400).

    Attributes:
        field: Name of the conflicting field (e.g. ``handle`` or ``email``)
    """

    status_code = 400
    code = "DUPLICATE_KEY"
    default_message = "Value is already in use"

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message or f"{field} is already in use")


class AlreadyExistsError(DuplicateKeyError):
    """Registration collided with an existing handle or email (400)."""


class InvalidCredentialsError(AppError):
    """Login or password check failed. Deliberately non-specific (401)."""

    status_code = 401
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"


class InvalidRefreshTokenError(AppError):
    """Refresh token is expired, malformed, or revoked (401)."""

    status_code = 401
    code = "INVALID_REFRESH_TOKEN"
    default_message = "Invalid or expired refresh token"


class UnauthorizedError(AppError):
    """Missing or invalid access token (401)."""

    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Authentication required"


class ForbiddenError(AppError):
    """Authenticated, but the role is not allowed (403)."""

    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFoundError(AppError):
    """Requested resource is absent (404)."""

    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class InternalError(AppError):
    """Unexpected store or signing failure (500)."""


# Raised by TokenService; callers translate them into one of the above.
class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    """Signature is valid but the token is past its expiry."""


class TokenInvalidError(TokenError):
    """Bad signature, wrong issuer/audience, or malformed token."""


__all__ = [
    "AppError",
    "ValidationError",
    "MissingFieldError",
    "DuplicateKeyError",
    "AlreadyExistsError",
    "InvalidCredentialsError",
    "InvalidRefreshTokenError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "InternalError",
    "TokenError",
    "TokenExpiredError",
    "TokenInvalidError",
]
