"""
Game records: finished sessions, the leaderboard, history and per-user stats.

Saving a session also posts a leaderboard entry and bumps the user's counters. The
counters are incremented in SQL so concurrent saves from the same user add up.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select, update

from finalexam.db.models import GameSession, LeaderboardEntry, User, utcnow
from finalexam.games.schemas import LeaderboardRow
from finalexam.users.schemas import UserResponse
from finalexam.users.service import require_user, user_response

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

PERIOD_WINDOWS = {
    "weekly": timedelta(days=7),
    "daily": timedelta(days=1),
}
RECENT_GAMES_LIMIT = 10


async def save_game_session(
    db: AsyncSession,
    user_id: str,
    game_mode: str,
    total_score: int,
    is_winner: bool,
    round_results: list[dict[str, Any]] | None = None,
    team_members: list[dict[str, Any]] | None = None,
) -> tuple[GameSession, User]:
    """Record a finished game for the user. Returns the session and the updated user."""
    session = GameSession(
        user_id=user_id,
        game_mode=game_mode,
        total_score=total_score,
        round_results=round_results or [],
        is_winner=is_winner,
        team_members=team_members or [],
    )
    db.add(session)
    db.add(LeaderboardEntry(user_id=user_id, score=total_score, period="all_time"))

    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            total_points=User.total_points + total_score,
            games_played=User.games_played + 1,
            games_won=User.games_won + (1 if is_winner else 0),
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.flush()

    user = await require_user(db, user_id)
    logger.info(
        "game_session_saved",
        user_id=user_id,
        session_id=session.id,
        game_mode=game_mode,
        total_score=total_score,
        is_winner=is_winner,
    )
    return session, user


async def get_leaderboard(db: AsyncSession, period: str = "all_time", limit: int = 100) -> list[LeaderboardRow]:
    """
    Top scores, best first.

    The leaderboard is public, so the embedded users carry no email address.
    """
    stmt = (
        select(LeaderboardEntry, User)
        .outerjoin(User, User.id == LeaderboardEntry.user_id)
        .order_by(LeaderboardEntry.score.desc(), LeaderboardEntry.created_at.asc())
        .limit(limit)
    )
    window = PERIOD_WINDOWS.get(period)
    if window is not None:
        stmt = stmt.where(LeaderboardEntry.created_at >= utcnow() - window)

    rows: list[LeaderboardRow] = []
    for index, (entry, user) in enumerate((await db.execute(stmt)).all(), start=1):
        if user is None:
            public_user = UserResponse(
                id="", email="", username="Unknown", avatar="", points=0, rank=index, games_played=0, wins=0
            )
        else:
            public_user = user_response(user).model_copy(update={"email": "", "rank": index})
        rows.append(LeaderboardRow(rank=index, user=public_user, score=entry.score, date=entry.created_at))
    return rows


async def get_game_history(db: AsyncSession, user_id: str, limit: int = 20, offset: int = 0) -> list[GameSession]:
    """The user's own sessions, newest first."""
    result = await db.execute(
        select(GameSession)
        .where(GameSession.user_id == user_id)
        .order_by(GameSession.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_user_stats(db: AsyncSession, user_id: str) -> tuple[User, int, list[GameSession]]:
    """
    The user plus their recent games.

    ``best_score`` is the best of the recent games only, not an all-time best.

    Raises:
        NotFoundError: If the user no longer exists.
    """
    user = await require_user(db, user_id)
    recent = await get_game_history(db, user_id, limit=RECENT_GAMES_LIMIT)
    best_score = max((s.total_score or 0 for s in recent), default=0)
    return user, best_score, recent
