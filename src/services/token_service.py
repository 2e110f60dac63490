"""JWT access/refresh token issuance and verification."""

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
import structlog

from src.config import get_settings
from src.models.auth import TokenPair
from src.models.user import User
from src.services.errors import TokenExpiredError, TokenInvalidError

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def parse_duration(label: str) -> timedelta:
    """Parse a TTL label such as ``"15m"``, ``"7d"`` or ``"3600"``.

    A bare number is read as seconds.

    Raises:
        ValueError: If the label is not a positive duration
    """
    match = _DURATION_RE.match(str(label))
    if match is None:
        raise ValueError(f"Invalid duration: {label!r}")
    amount, unit = int(match.group(1)), match.group(2)
    if amount <= 0:
        raise ValueError(f"Duration must be positive: {label!r}")
    return timedelta(**{_DURATION_UNITS[unit]: amount})


class TokenService:
    """Stateless issuer and verifier of signed tokens.

    Access tokens are signed with ``jwt_secret``; refresh tokens with
    ``jwt_refresh_secret`` when configured, else ``jwt_secret``.
    """

    def __init__(self):
        self.settings = get_settings()

    @property
    def access_ttl(self) -> timedelta:
        return parse_duration(self.settings.jwt_expire)

    @property
    def refresh_ttl(self) -> timedelta:
        return parse_duration(self.settings.jwt_refresh_expire)

    def _encode(self, claims: Dict[str, Any], ttl: timedelta, secret: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **claims,
            "iss": self.settings.jwt_issuer,
            "aud": self.settings.jwt_audience,
            "iat": now,
            "exp": now + ttl,
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)

    def issue_access_token(self, user_id: str, handle: str, email: str) -> str:
        """Create a signed access token.

        Args:
            user_id: User UUID as string (placed in 'sub' claim)
            handle: User handle to include in payload
            email: User email to include in payload

        Returns:
            Encoded JWT string with ``type`` = "access"
        """
        token = self._encode(
            {
                "sub": user_id,
                "handle": handle,
                "email": email,
                "type": ACCESS_TOKEN_TYPE,
            },
            self.access_ttl,
            self.settings.jwt_secret,
        )
        logger.debug(
            "access_token_issued",
            user_id=user_id,
            expires_in=self.settings.jwt_expire,
        )
        return token

    def issue_refresh_token(self, user_id: str) -> str:
        """Create a signed refresh token with ``type`` = "refresh"."""
        token = self._encode(
            {"sub": user_id, "type": REFRESH_TOKEN_TYPE},
            self.refresh_ttl,
            self.settings.refresh_secret,
        )
        logger.debug(
            "refresh_token_issued",
            user_id=user_id,
            expires_in=self.settings.jwt_refresh_expire,
        )
        return token

    def verify(self, token: str, expect_refresh: bool = False) -> Dict[str, Any]:
        """Decode and validate a token.

        Args:
            token: Encoded JWT string
            expect_refresh: Verify against the refresh secret instead of
                the access secret

        Returns:
            Decoded claims

        Raises:
            TokenExpiredError: Signature is valid but ``exp`` has passed
            TokenInvalidError: Bad signature, wrong issuer/audience, or malformed
        """
        secret = (
            self.settings.refresh_secret if expect_refresh else self.settings.jwt_secret
        )
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
                options={"require": ["exp", "sub", "type"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid token: {e}")

    def issue_pair(self, user: User) -> TokenPair:
        """Issue an access/refresh pair for a user."""
        user_id = str(user.id)
        return TokenPair(
            access_token=self.issue_access_token(user_id, user.handle, user.email),
            refresh_token=self.issue_refresh_token(user_id),
            expires_in=self.settings.jwt_expire,
        )
