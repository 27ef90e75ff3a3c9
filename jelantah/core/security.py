"""
Bearer tokens for API callers.

A token only identifies the user (``sub``); the role is always read from
the user row, so changing a user's role or deactivating them takes effect
on the next request. Issuing tokens (login) is not part of this service;
``scripts/seed_demo_data.py`` prints tokens for local use.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import uuid

from jose import JWTError, jwt

from jelantah.config import settings

TOKEN_TYPE = "access"


def create_access_token(user_id: uuid.UUID | str, expires_delta: Optional[timedelta] = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "jti": uuid.uuid4().hex,
        "type": TOKEN_TYPE,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """Claims of a well-signed, unexpired token, else None."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def verify_access_token(token: str) -> Optional[str]:
    """User id carried by an access token, or None."""
    claims = decode_token(token)
    if not claims or claims.get("type") != TOKEN_TYPE:
        return None
    return claims.get("sub")
