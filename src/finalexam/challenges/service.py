"""
Challenge protocol.

A challenge moves pending -> active -> completed. Every write is a single guarded
UPDATE whose WHERE clause carries the whole precondition, so concurrent requests cannot
interleave a check and a write. The challenger and opponent paths are scoped to
different owner columns, which makes their two submissions commute. When a guarded
write matches nothing, the row is re-read only to pick the error message.

``expires_at`` is recorded but not enforced here; ``expired`` blocks joins and
submissions only if something else sets it.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import case, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from finalexam.challenges.codes import generate_challenge_code, generate_question_seed
from finalexam.challenges.schemas import NamedChallengeResponse
from finalexam.config import get_settings
from finalexam.db.models import Challenge, User, utcnow
from finalexam.errors import (
    AuthorizationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_EXPIRED = "expired"

OPEN_STATUSES = (STATUS_PENDING, STATUS_ACTIVE)
CLOSED_STATUSES = (STATUS_COMPLETED, STATUS_EXPIRED)

_NOT_FOUND = "Challenge not found"


async def _load(db: AsyncSession, challenge_id: str) -> Challenge | None:
    result = await db.execute(
        select(Challenge).where(Challenge.id == challenge_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _load_by_code(db: AsyncSession, code: str) -> Challenge | None:
    result = await db.execute(
        select(Challenge).where(Challenge.challenge_code == code).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_challenge(db: AsyncSession, challenger_id: str) -> Challenge:
    """
    Open a new challenge with a fresh code and question seed.

    A code collision surfaces as a unique-constraint violation; the insert is retried
    with a new code a bounded number of times.

    Raises:
        InternalError: If no unique code could be allocated.
    """
    settings = get_settings()
    for attempt in range(1, settings.challenge_code_attempts + 1):
        now = utcnow()
        challenge = Challenge(
            challenge_code=generate_challenge_code(),
            challenger_id=challenger_id,
            question_seed=generate_question_seed(),
            status=STATUS_PENDING,
            challenger_round_results=[],
            opponent_round_results=[],
            challenger_team_members=[],
            opponent_team_members=[],
            created_at=now,
            expires_at=now + timedelta(days=settings.challenge_expire_days),
        )
        db.add(challenge)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.warning("challenge_code_collision", attempt=attempt)
            continue
        logger.info("challenge_created", challenge_id=challenge.id, challenger_id=challenger_id)
        return challenge

    logger.error("challenge_code_exhausted", attempts=settings.challenge_code_attempts)
    raise InternalError("Could not allocate a challenge code")


# ---------------------------------------------------------------------------
# Join
# ---------------------------------------------------------------------------


async def join_challenge(db: AsyncSession, code: str, user_id: str) -> Challenge:
    """
    Claim the opponent seat of the challenge with ``code``.

    Rejoining by the same opponent is a no-op success. The status is left unchanged.

    Raises:
        NotFoundError: No challenge has this code.
        ValidationError: The challenge is closed, or the user is its challenger.
        ConflictError: Another user already holds the opponent seat.
    """
    result = await db.execute(
        update(Challenge)
        .where(Challenge.challenge_code == code)
        .where(Challenge.status.notin_(CLOSED_STATUSES))
        .where(Challenge.challenger_id != user_id)
        .where(or_(Challenge.opponent_id.is_(None), Challenge.opponent_id == user_id))
        .values(opponent_id=user_id)
        .execution_options(synchronize_session=False)
    )
    challenge = await _load_by_code(db, code)

    if result.rowcount == 0:
        if challenge is None:
            raise NotFoundError(_NOT_FOUND)
        if challenge.status == STATUS_COMPLETED:
            raise ValidationError("Challenge already completed")
        if challenge.status == STATUS_EXPIRED:
            raise ValidationError("Challenge has expired")
        if challenge.challenger_id == user_id:
            raise ValidationError("Cannot join your own challenge")
        raise ConflictError("Challenge already has an opponent")

    if challenge is None:
        raise NotFoundError(_NOT_FOUND)
    logger.info("challenge_joined", challenge_id=challenge.id, opponent_id=user_id)
    return challenge


# ---------------------------------------------------------------------------
# Score submission
# ---------------------------------------------------------------------------


async def _submit_score(
    db: AsyncSession,
    side: str,
    challenge_id: str,
    user_id: str,
    score: int,
    round_results: list[dict[str, Any]],
    team_members: list[dict[str, Any]],
) -> Challenge:
    other = "opponent" if side == "challenger" else "challenger"
    owner_col = getattr(Challenge, f"{side}_id")
    score_col = getattr(Challenge, f"{side}_score")
    other_score_col = getattr(Challenge, f"{other}_score")

    result = await db.execute(
        update(Challenge)
        .where(Challenge.id == challenge_id)
        .where(owner_col == user_id)
        .where(score_col.is_(None))
        .where(Challenge.status.in_(OPEN_STATUSES))
        .values(
            {
                score_col: score,
                getattr(Challenge, f"{side}_round_results"): round_results,
                getattr(Challenge, f"{side}_team_members"): team_members,
                # Reads the pre-update row: completed once both sides have a score
                Challenge.status: case(
                    (other_score_col.is_not(None), STATUS_COMPLETED),
                    else_=STATUS_ACTIVE,
                ),
            }
        )
        .execution_options(synchronize_session=False)
    )
    challenge = await _load(db, challenge_id)

    if result.rowcount == 0:
        if challenge is None or getattr(challenge, f"{side}_id") != user_id:
            raise AuthorizationError(_NOT_FOUND)
        if getattr(challenge, f"{side}_score") is not None:
            raise ConflictError("Score already submitted")
        raise ConflictError("Challenge is no longer open")

    if challenge is None:
        raise AuthorizationError(_NOT_FOUND)
    logger.info(
        "challenge_score_submitted",
        challenge_id=challenge_id,
        side=side,
        user_id=user_id,
        status=challenge.status,
    )
    return challenge


async def submit_challenger_score(
    db: AsyncSession,
    challenge_id: str,
    user_id: str,
    score: int,
    round_results: list[dict[str, Any]],
    team_members: list[dict[str, Any]],
) -> Challenge:
    """Record the challenger's result. Only the row's own challenger can do this, once."""
    return await _submit_score(db, "challenger", challenge_id, user_id, score, round_results, team_members)


async def submit_opponent_score(
    db: AsyncSession,
    challenge_id: str,
    user_id: str,
    score: int,
    round_results: list[dict[str, Any]],
    team_members: list[dict[str, Any]],
) -> Challenge:
    """Record the opponent's result. Only the user who joined can do this, once."""
    return await _submit_score(db, "opponent", challenge_id, user_id, score, round_results, team_members)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def _named_select() -> Any:
    challenger = aliased(User)
    opponent = aliased(User)
    return (
        select(Challenge, challenger.username, opponent.username)
        .outerjoin(challenger, challenger.id == Challenge.challenger_id)
        .outerjoin(opponent, opponent.id == Challenge.opponent_id)
        .execution_options(populate_existing=True)
    )


async def list_challenges(db: AsyncSession, user_id: str) -> list[NamedChallengeResponse]:
    """All challenges the user takes part in, newest first."""
    result = await db.execute(
        _named_select()
        .where(or_(Challenge.challenger_id == user_id, Challenge.opponent_id == user_id))
        .order_by(Challenge.created_at.desc())
    )
    return [NamedChallengeResponse.from_row(c, cu, ou) for c, cu, ou in result.all()]


async def get_challenge(
    db: AsyncSession,
    challenge_id: str | None = None,
    challenge_code: str | None = None,
) -> NamedChallengeResponse:
    """
    Look up one challenge by id, or by code when no id is given.

    Raises:
        ValidationError: Neither key was given.
        NotFoundError: No such challenge.
    """
    stmt = _named_select()
    if challenge_id:
        stmt = stmt.where(Challenge.id == challenge_id)
    elif challenge_code:
        stmt = stmt.where(Challenge.challenge_code == challenge_code.upper())
    else:
        raise ValidationError("challengeId or challengeCode required")

    row = (await db.execute(stmt)).first()
    if row is None:
        raise NotFoundError(_NOT_FOUND)
    challenge, challenger_username, opponent_username = row
    return NamedChallengeResponse.from_row(challenge, challenger_username, opponent_username)
