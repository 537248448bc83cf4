"""
Security Utilities

Admin password hashing and JWT token management.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from app.core.config import settings


ADMIN_ROLE = "admin"
HASH_ENCODING = "utf-8"


def hash_password(password: str) -> str:
    """Bcrypt hash suitable for ADMIN_PASSWORD_HASH (see hash_admin_password.py)."""
    return bcrypt.hashpw(password.encode(HASH_ENCODING), bcrypt.gensalt()).decode(HASH_ENCODING)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Check a login password against the configured admin hash.

    An empty hash disables admin login, and a malformed one never matches.
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode(HASH_ENCODING),
            hashed_password.encode(HASH_ENCODING),
        )
    except ValueError:
        return False


def create_access_token(
    subject: str | Any,
    role: str = ADMIN_ROLE,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The subject of the token (the admin username).
        role: Role claim checked by the admin guard.
        expires_delta: Optional custom expiration time.

    Returns:
        str: Encoded JWT token.
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode = {
        "sub": str(subject),
        "role": role,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


def decode_access_token(token: str) -> dict | None:
    """
    Decode and validate a JWT access token.

    Returns:
        dict: Decoded token payload if valid, None otherwise.
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError:
        return None
