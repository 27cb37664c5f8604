"""
Security Module
JWT access tokens carrying the caller identity (user id + marketplace role).
"""
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from tradiehub.core.config import settings


def create_access_token(
    subject: str,
    role: str,
    expires_delta: timedelta | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The user id the token is issued for
        role: Marketplace role (tradie, client or admin)
        expires_delta: Optional custom expiration time
        extra_claims: Additional claims to include in the token
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode: dict[str, Any] = {
        "exp": expire,
        "iat": now,
        "sub": str(subject),
        "role": role,
    }
    if extra_claims:
        to_encode.update(extra_claims)

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str) -> dict[str, Any] | None:
    """Decode a JWT token; None if the signature or expiry is invalid."""
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
    except JWTError:
        return None
