"""Security utilities for JWT and password handling."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def _encode_token(data: dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    """Sign a token of the given type that expires after ``expires_delta``."""
    issued_at = datetime.now(UTC)
    to_encode = {
        **data,
        "exp": issued_at + expires_delta,
        "iat": issued_at,
        "type": token_type,
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode (``sub`` and ``role``)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    return _encode_token(
        data,
        ACCESS_TOKEN,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_refresh_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT refresh token.

    Args:
        data: Payload data to encode
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT refresh token
    """
    return _encode_token(
        data,
        REFRESH_TOKEN,
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def decode_token(token: str, expected_type: str) -> dict[str, Any] | None:
    """
    Decode a JWT and check its type.

    Args:
        token: JWT to decode
        expected_type: ``access`` or ``refresh``

    Returns:
        Decoded payload or None if invalid, expired or of another type
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if payload.get("type") != expected_type:
        return None

    return payload


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT access token."""
    return decode_token(token, ACCESS_TOKEN)


def decode_refresh_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT refresh token."""
    return decode_token(token, REFRESH_TOKEN)
