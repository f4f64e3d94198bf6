"""Payload and response schemas for game sessions, leaderboard, history and stats."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Field

from finalexam.schemas import (
    CamelCaseModel,
    Payload,
    RoundResults,
    RowModel,
    TeamMembers,
    optional,
    required,
)
from finalexam.users.schemas import UserResponse
from finalexam.validation import validate_bool, validate_non_negative_int, validate_string

GAME_MODE_MAX_LENGTH = 50

LeaderboardPeriod = Literal["all_time", "weekly", "daily"]
LEADERBOARD_PERIODS = ("all_time", "weekly", "daily")


def _period_or_all_time(val: Any) -> Any:
    # Unknown or missing periods read as the all-time board
    return val if val in LEADERBOARD_PERIODS else "all_time"


# ---------------------------------------------------------------------------
# saveGameSession
# ---------------------------------------------------------------------------


class SaveGameSessionPayload(Payload):
    game_mode: Annotated[str, BeforeValidator(lambda v: validate_string(v, "gameMode", GAME_MODE_MAX_LENGTH))] = (
        required()
    )
    total_score: Annotated[int, BeforeValidator(lambda v: validate_non_negative_int(v, "totalScore"))] = required()
    round_results: RoundResults = optional()
    is_winner: Annotated[bool, BeforeValidator(lambda v: validate_bool(v, "isWinner"))] = required()
    team_members: TeamMembers = optional()


class GameSessionResponse(RowModel):
    id: str
    user_id: str
    game_mode: str
    total_score: int
    round_results: list[dict[str, Any]] = []
    is_winner: bool
    team_members: list[dict[str, Any]] = []
    created_at: datetime


class SaveGameSessionResponse(CamelCaseModel):
    session: GameSessionResponse
    points_earned: int
    user: UserResponse


# ---------------------------------------------------------------------------
# getLeaderboard
# ---------------------------------------------------------------------------


class GetLeaderboardPayload(Payload):
    period: Annotated[LeaderboardPeriod, BeforeValidator(_period_or_all_time)] = "all_time"
    limit: int = Field(default=100, ge=1, le=100)


class LeaderboardRow(CamelCaseModel):
    rank: int
    user: UserResponse
    score: int
    date: datetime


class LeaderboardResponse(CamelCaseModel):
    leaderboard: list[LeaderboardRow]


# ---------------------------------------------------------------------------
# getGameHistory / getUserStats
# ---------------------------------------------------------------------------


class GetGameHistoryPayload(Payload):
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class GameHistoryResponse(CamelCaseModel):
    sessions: list[GameSessionResponse]


class UserStatsResponse(CamelCaseModel):
    user: UserResponse
    best_score: int
    recent_games: list[GameSessionResponse]
