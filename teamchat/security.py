"""
Security utilities for bearer token handling.

Tokens are issued by the auth service; this module verifies them and can
mint development/test tokens with the same claims.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from teamchat.config.settings import get_settings
from teamchat.errors import AuthenticationError

settings = get_settings()


def create_access_token(
    user_id: UUID, email: Optional[str] = None, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: User UUID
        email: Optional user email claim
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(user_id),  # Subject (user ID)
        "exp": expire,
        "iat": now,
        "type": "access",
        "jti": str(uuid.uuid4()),
    }
    if email:
        to_encode["email"] = email

    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, token_type: str = "access") -> dict:
    """
    Verify and decode a JWT token.

    Raises:
        JWTError: If token is invalid or expired
        ValueError: If token type doesn't match
    """
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])

    if payload.get("type", token_type) != token_type:
        raise ValueError(f"Invalid token type. Expected {token_type}, got {payload.get('type')}")

    return payload


def authenticate_token(token: Optional[str]) -> UUID:
    """
    Resolve a bearer token to the user id it was issued for.

    Raises:
        AuthenticationError: Missing, malformed, expired or badly signed token
    """
    if not token:
        raise AuthenticationError()
    try:
        payload = verify_token(token)
        return UUID(payload["sub"])
    except (JWTError, ValueError, KeyError, TypeError):
        raise AuthenticationError()
