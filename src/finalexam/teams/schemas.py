"""Payload and response schemas for saved teams."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BeforeValidator

from finalexam.schemas import CamelCaseModel, Payload, RowModel, optional, required
from finalexam.validation import validate_members, validate_string

TEAM_NAME_MAX_LENGTH = 100
TEAM_ID_MAX_LENGTH = 64

TeamName = Annotated[str, BeforeValidator(lambda v: validate_string(v, "teamName", TEAM_NAME_MAX_LENGTH))]
TeamId = Annotated[str, BeforeValidator(lambda v: validate_string(v, "teamId", TEAM_ID_MAX_LENGTH))]
Members = Annotated[list[dict[str, Any]], BeforeValidator(lambda v: list(validate_members(v)))]
# On save, a missing or null roster is an empty team
NewMembers = Annotated[list[dict[str, Any]], BeforeValidator(lambda v: [] if v is None else list(validate_members(v)))]


class SaveTeamPayload(Payload):
    team_name: TeamName = required()
    members: NewMembers = optional()


class UpdateTeamPayload(Payload):
    """Only the fields present are changed."""

    team_id: TeamId = required()
    team_name: TeamName | None = None
    members: Members | None = None


class TeamIdPayload(Payload):
    team_id: TeamId = required()


class TeamResponse(RowModel):
    id: str
    owner_id: str
    team_name: str
    members: list[dict[str, Any]] = []
    created_at: datetime
    updated_at: datetime | None = None


class TeamEnvelope(CamelCaseModel):
    team: TeamResponse


class TeamListResponse(CamelCaseModel):
    teams: list[TeamResponse]
