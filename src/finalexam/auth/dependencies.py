"""FastAPI authentication dependencies."""

from __future__ import annotations

from fastapi import Header, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from finalexam.auth.jwt import verify_token
from finalexam.errors import AuthenticationError

# The dispatcher decides per action whether a token is needed, so a missing header is not an error here
_bearer = HTTPBearer(auto_error=False)


async def get_session_token(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    x_app_token: str | None = Header(default=None),
) -> str | None:
    """Session token from ``Authorization: Bearer`` or, failing that, ``X-App-Token``."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return x_app_token or None


def require_actor(token: str | None) -> str:
    """
    Resolve the acting user id from a session token.

    Raises:
        AuthenticationError: If the token is missing, malformed, tampered with or expired.
    """
    if not token:
        raise AuthenticationError("Authentication required")
    user_id = verify_token(token)
    if user_id is None:
        raise AuthenticationError("Invalid or expired token")
    return user_id
