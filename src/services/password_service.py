"""Password hashing with bcrypt."""

import secrets
from functools import lru_cache

import bcrypt

from src.config import get_settings

# bcrypt only reads the first 72 bytes and newer releases refuse longer input
PASSWORD_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain-text password to hash, at most 72 UTF-8 bytes

    Returns:
        Bcrypt hash string (cost factor from settings, default 12)
    """
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash.

    A malformed stored hash, or a password bcrypt cannot accept, counts as
    a mismatch.
    """
    try:
        return bcrypt.checkpw(
            password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        return False


@lru_cache
def _dummy_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))


def burn_verify(password: str) -> None:
    """Spend one bcrypt check on a throwaway hash.

    Login paths that fail before reaching a real hash call this so that
    every failure costs the same time.
    """
    verify_password(password, _dummy_hash())
