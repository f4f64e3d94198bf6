"""Saved team rosters. Every read and write is scoped to the owning user."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, func, select, update

from finalexam.config import get_settings
from finalexam.db.models import Team, User, utcnow
from finalexam.errors import AuthorizationError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

_NOT_FOUND = "Team not found"


async def _load(db: AsyncSession, team_id: str) -> Team | None:
    result = await db.execute(select(Team).where(Team.id == team_id).execution_options(populate_existing=True))
    return result.scalar_one_or_none()


def lock_owner(owner_id: str) -> Select[tuple[str]]:
    """SELECT ... FOR UPDATE on the owning user row."""
    return select(User.id).where(User.id == owner_id).with_for_update()


async def save_team(
    db: AsyncSession,
    owner_id: str,
    team_name: str,
    members: list[dict[str, Any]] | None = None,
) -> Team:
    """
    Save a new team for the user.

    Raises:
        ValidationError: If the user already has the maximum number of teams.
        NotFoundError: If the owner no longer exists.
    """
    max_teams = get_settings().max_teams_per_user
    # Serializes concurrent saves by the same owner until commit (no-op on SQLite)
    owner = (await db.execute(lock_owner(owner_id))).scalar_one_or_none()
    if owner is None:
        raise NotFoundError("User not found")
    count = (await db.execute(select(func.count()).select_from(Team).where(Team.owner_id == owner_id))).scalar_one()
    if count >= max_teams:
        raise ValidationError(f"Maximum {max_teams} saved teams allowed")

    team = Team(owner_id=owner_id, team_name=team_name, members=members or [], created_at=utcnow())
    db.add(team)
    await db.flush()
    logger.info("team_saved", team_id=team.id, owner_id=owner_id)
    return team


async def list_teams(db: AsyncSession, owner_id: str) -> list[Team]:
    result = await db.execute(select(Team).where(Team.owner_id == owner_id).order_by(Team.created_at.desc()))
    return list(result.scalars().all())


async def update_team(
    db: AsyncSession,
    owner_id: str,
    team_id: str,
    team_name: str | None = None,
    members: list[dict[str, Any]] | None = None,
) -> Team:
    """
    Rename a team and/or replace its members.

    Raises:
        AuthorizationError: The team does not exist or belongs to someone else.
    """
    values: dict[str, Any] = {"updated_at": utcnow()}
    if team_name is not None:
        values["team_name"] = team_name
    if members is not None:
        values["members"] = members

    result = await db.execute(
        update(Team)
        .where(Team.id == team_id)
        .where(Team.owner_id == owner_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AuthorizationError(_NOT_FOUND)

    team = await _load(db, team_id)
    if team is None:
        raise AuthorizationError(_NOT_FOUND)
    logger.info("team_updated", team_id=team_id, owner_id=owner_id)
    return team


async def delete_team(db: AsyncSession, owner_id: str, team_id: str) -> None:
    """
    Delete one of the user's teams.

    Raises:
        AuthorizationError: The team does not exist or belongs to someone else.
    """
    result = await db.execute(
        delete(Team)
        .where(Team.id == team_id)
        .where(Team.owner_id == owner_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AuthorizationError(_NOT_FOUND)
    logger.info("team_deleted", team_id=team_id, owner_id=owner_id)
