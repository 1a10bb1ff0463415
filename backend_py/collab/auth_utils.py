"""Helper functions for JWT handling.

This module is the single trust boundary of the service: the Socket.IO
handshake and the REST dependencies both call :func:`verify_token`.
It uses PyJWT to encode and decode tokens. The secret key and token
expiry are configurable via environment variables.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict

import jwt
from fastapi import Header, HTTPException

from .errors import InvalidCredential, MissingCredential

SECRET_KEY = os.getenv("JWT_SECRET", "change-this-in-production")
ACCESS_TOKEN_EXPIRE_SECONDS = int(os.getenv("JWT_EXPIRY_SECONDS", str(7 * 24 * 60 * 60)))


@dataclass(frozen=True)
class UserIdentity:
    user_id: int
    email: str | None = None


def create_access_token(
    data: Dict[str, Any],
    expires_delta: int | timedelta | None = None,
    secret: str | None = None,
) -> str:
    """Create a signed JWT with optional expiry.

    Args:
        data: Payload to encode in the token. The user id goes in ``sub``.
        expires_delta: Optional time in seconds (int) or a timedelta object.
            If omitted, the default expiry is used.
        secret: Signing key, defaults to ``JWT_SECRET``.

    Returns:
        A JWT string encoded with HS256.
    """
    to_encode = data.copy()

    if isinstance(expires_delta, timedelta):
        expire_seconds = expires_delta.total_seconds()
    else:
        expire_seconds = expires_delta if expires_delta is not None else ACCESS_TOKEN_EXPIRE_SECONDS

    to_encode["exp"] = int(time.time()) + int(expire_seconds)
    return jwt.encode(to_encode, secret or SECRET_KEY, algorithm="HS256")


def verify_token(token: str | None, secret: str | None = None) -> UserIdentity:
    """Decode a JWT and return the identity it carries.

    Raises MissingCredential for an empty token and InvalidCredential if
    the token is expired, badly signed or has no usable user id. Older
    tokens put the id in ``id`` rather than ``sub``; both are accepted.
    """
    if not token:
        raise MissingCredential()
    try:
        payload = jwt.decode(token, secret or SECRET_KEY, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise InvalidCredential("Token expired")
    except jwt.InvalidTokenError:
        raise InvalidCredential()

    raw_id = payload.get("sub", payload.get("id"))
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        raise InvalidCredential("Invalid token payload")
    if user_id <= 0:
        raise InvalidCredential("Invalid token payload")
    return UserIdentity(user_id=user_id, email=payload.get("email"))


def get_current_identity(authorization: str | None = Header(default=None)) -> UserIdentity:
    """FastAPI dependency resolving the Bearer token to a UserIdentity."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Token required")
    token = authorization.split(" ", 1)[1]
    try:
        return verify_token(token)
    except (InvalidCredential, MissingCredential) as exc:
        raise HTTPException(status_code=403, detail=exc.message)
