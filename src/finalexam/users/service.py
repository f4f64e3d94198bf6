"""User queries, profile updates and prize redemption."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select, update

from finalexam.db.models import PrizeRedemption, User, utcnow
from finalexam.errors import NotFoundError, ValidationError
from finalexam.users.schemas import DEFAULT_RANK, UserResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def user_response(user: User) -> UserResponse:
    """Map a stored user row to its client-facing shape."""
    return UserResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        avatar=user.avatar or "",
        points=user.total_points or 0,
        rank=user.current_rank or DEFAULT_RANK,
        games_played=user.games_played or 0,
        wins=user.games_won or 0,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def require_user(db: AsyncSession, user_id: str) -> User:
    """Fetch the acting user, refreshing any stale identity-map state."""
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


async def update_profile(db: AsyncSession, user_id: str, avatar: str | None = None) -> User:
    """Update the acting user's profile. Only the avatar is editable."""
    if avatar is not None:
        await db.execute(update(User).where(User.id == user_id).values(avatar=avatar, updated_at=utcnow()))
        await db.flush()
    return await require_user(db, user_id)


# ---------------------------------------------------------------------------
# Prizes
# ---------------------------------------------------------------------------


async def redeem_prize(
    db: AsyncSession,
    user_id: str,
    prize_id: str,
    prize_name: str,
    points_cost: int,
) -> User:
    """
    Spend points on a prize.

    The balance check and the deduction are one guarded UPDATE, so two concurrent
    redemptions can never overdraw the account.

    Raises:
        ValidationError: If the user does not have enough points.
    """
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .where(User.total_points >= points_cost)
        .values(total_points=User.total_points - points_cost, updated_at=utcnow())
    )
    if result.rowcount == 0:
        await require_user(db, user_id)
        raise ValidationError("Not enough points")

    db.add(PrizeRedemption(user_id=user_id, prize_id=prize_id, prize_name=prize_name, points_cost=points_cost))
    await db.flush()
    logger.info("prize_redeemed", user_id=user_id, prize_id=prize_id, points_cost=points_cost)
    return await require_user(db, user_id)
