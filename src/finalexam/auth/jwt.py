"""
HS256 session tokens.

Tokens are stateless: ``{userId, exp, jti}`` signed with the server secret. There is no
server-side session store, so a token stays valid until ``exp`` and logout is
client-local. ``jti`` makes every issued token distinct.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt

from finalexam.config import get_settings

JWT_ALGORITHM = "HS256"
TOKEN_TTL_SECONDS = 24 * 60 * 60


def sign_token(claims: dict[str, Any], secret: str) -> str:
    """Sign a claims dict into a three-segment HS256 token."""
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def create_access_token(user_id: str, secret: str | None = None, *, now: float | None = None) -> str:
    """
    Issue a session token for a user, valid for 24 hours.

    Args:
        user_id: The user's database ID.
        secret: Signing secret (defaults to the configured one).
        now: Issue time in epoch seconds (defaults to the current time).

    Returns:
        Encoded token string.
    """
    issued_at = time.time() if now is None else now
    claims = {
        "userId": user_id,
        "exp": int(issued_at) + TOKEN_TTL_SECONDS,
        "jti": uuid.uuid4().hex,
    }
    return sign_token(claims, secret or get_settings().jwt_secret)


def verify_token(token: str, secret: str | None = None) -> str | None:
    """
    Verify a session token.

    Returns:
        The ``userId`` claim, or None if the token is malformed, tampered with,
        signed with another secret, or expired.
    """
    if not isinstance(token, str) or token.count(".") != 2:
        return None
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            secret or get_settings().jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.InvalidTokenError:
        return None

    user_id = payload.get("userId")
    if not isinstance(user_id, str) or not user_id:
        return None
    return user_id
