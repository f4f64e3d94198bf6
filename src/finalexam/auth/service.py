"""
Account business logic.

Handles registration, login and transparent migration of legacy password hashes.
Password hashing is CPU-bound, so it runs in the worker thread pool.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from finalexam.auth.jwt import create_access_token
from finalexam.auth.password import hash_password, verify_password
from finalexam.db.models import User, utcnow
from finalexam.errors import AuthenticationError, ConflictError
from finalexam.users.service import get_user_by_email
from finalexam.validation import is_encodable

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

_CREDENTIALS_MESSAGE = "Invalid email or password"


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    email: str,
    username: str,
    password: str,
    avatar: str = "",
) -> tuple[User, str]:
    """
    Create an account and issue its first session token.

    Inputs are expected to be validated already (see ``RegisterPayload``).

    Raises:
        ConflictError: If the email or the username is already taken.
    """
    email = email.lower()
    result = await db.execute(
        select(User.id).where(or_(func.lower(User.email) == email, User.username == username)).limit(1)
    )
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Email or username already taken")

    password_hash = await run_in_threadpool(hash_password, password)
    user = User(
        email=email,
        username=username,
        password_hash=password_hash,
        avatar=avatar,
        total_points=0,
        games_played=0,
        games_won=0,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        # Lost a race with a concurrent registration for the same email/username
        raise ConflictError("Email or username already taken") from e

    logger.info("user_registered", user_id=user.id, username=username)
    return user, create_access_token(user.id)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(db: AsyncSession, email: str, password: str) -> tuple[User, str]:
    """
    Check credentials and issue a session token.

    A legacy or under-strength hash is replaced with a fresh PBKDF2 hash after a
    successful check.

    Raises:
        AuthenticationError: Unknown email or wrong password (same message for both).
    """
    email = email.strip()
    user = await get_user_by_email(db, email) if is_encodable(email) else None
    if user is None:
        logger.info("login_failed", reason="unknown_email")
        raise AuthenticationError(_CREDENTIALS_MESSAGE)

    check = await run_in_threadpool(verify_password, password, user.password_hash)
    if not check.valid:
        logger.info("login_failed", user_id=user.id, reason="bad_password")
        raise AuthenticationError(_CREDENTIALS_MESSAGE)

    if check.needs_rehash:
        user.password_hash = await run_in_threadpool(hash_password, password)
        user.updated_at = utcnow()
        await db.flush()
        logger.info("password_hash_upgraded", user_id=user.id)

    logger.info("user_logged_in", user_id=user.id)
    return user, create_access_token(user.id)
