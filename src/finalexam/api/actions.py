"""
Action registry.

Every action the dispatcher understands is registered here with the payload model its
``data`` must satisfy, the handler that runs it, whether it is reachable without a
session token, and an optional rate-limit policy. The registry is the closed set of
request variants: anything not in it is an unknown action.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from finalexam.auth import service as auth_service
from finalexam.auth.rate_limit import RateLimitPolicy, login_policy, register_policy
from finalexam.auth.schemas import AuthResponse, LoginPayload, RegisterPayload
from finalexam.challenges import service as challenge_service
from finalexam.challenges.schemas import (
    ChallengeEnvelope,
    ChallengeListResponse,
    ChallengeResponse,
    GetChallengePayload,
    JoinChallengePayload,
    NamedChallengeEnvelope,
    SubmitScorePayload,
)
from finalexam.config import Settings
from finalexam.errors import AuthenticationError
from finalexam.games import service as game_service
from finalexam.games.schemas import (
    GameHistoryResponse,
    GameSessionResponse,
    GetGameHistoryPayload,
    GetLeaderboardPayload,
    LeaderboardResponse,
    SaveGameSessionPayload,
    SaveGameSessionResponse,
    UserStatsResponse,
)
from finalexam.practice import service as practice_service
from finalexam.practice.schemas import (
    PracticeProgressResponse,
    PracticeStatsResponse,
    SavePracticeProgressPayload,
)
from finalexam.schemas import EmptyPayload, Payload, SuccessResponse
from finalexam.teams import service as team_service
from finalexam.teams.schemas import (
    SaveTeamPayload,
    TeamEnvelope,
    TeamIdPayload,
    TeamListResponse,
    TeamResponse,
    UpdateTeamPayload,
)
from finalexam.users import service as user_service
from finalexam.users.schemas import RedeemPrizePayload, UpdateProfilePayload, UserEnvelope


@dataclass(frozen=True)
class ActionContext:
    """Per-request state handed to every handler."""

    db: AsyncSession
    request: Request
    user_id: str | None = None

    @property
    def actor(self) -> str:
        """The authenticated user id. Only public actions run without one."""
        if self.user_id is None:
            raise AuthenticationError("Authentication required")
        return self.user_id


Handler = Callable[[ActionContext, Any], Awaitable[BaseModel]]


@dataclass(frozen=True)
class Action:
    name: str
    payload: type[Payload]
    handler: Handler
    public: bool = False
    rate_limit: Callable[[Settings], RateLimitPolicy] | None = None


ACTIONS: dict[str, Action] = {}


def action(
    name: str,
    payload: type[Payload] = EmptyPayload,
    *,
    public: bool = False,
    rate_limit: Callable[[Settings], RateLimitPolicy] | None = None,
) -> Callable[[Handler], Handler]:
    """Register the decorated coroutine as the handler for ``name``."""

    def decorator(handler: Handler) -> Handler:
        ACTIONS[name] = Action(name=name, payload=payload, handler=handler, public=public, rate_limit=rate_limit)
        return handler

    return decorator


def public_actions() -> frozenset[str]:
    return frozenset(name for name, a in ACTIONS.items() if a.public)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@action("register", RegisterPayload, public=True, rate_limit=register_policy)
async def register(ctx: ActionContext, data: RegisterPayload) -> AuthResponse:
    user, token = await auth_service.register_user(ctx.db, data.email, data.username, data.password, data.avatar)
    return AuthResponse(user=user_service.user_response(user), token=token)


@action("login", LoginPayload, public=True, rate_limit=login_policy)
async def login(ctx: ActionContext, data: LoginPayload) -> AuthResponse:
    user, token = await auth_service.authenticate_user(ctx.db, data.email, data.password)
    return AuthResponse(user=user_service.user_response(user), token=token)


@action("updateProfile", UpdateProfilePayload)
async def update_profile(ctx: ActionContext, data: UpdateProfilePayload) -> UserEnvelope:
    user = await user_service.update_profile(ctx.db, ctx.actor, avatar=data.avatar)
    return UserEnvelope(user=user_service.user_response(user))


@action("redeemPrize", RedeemPrizePayload)
async def redeem_prize(ctx: ActionContext, data: RedeemPrizePayload) -> UserEnvelope:
    user = await user_service.redeem_prize(ctx.db, ctx.actor, data.prize_id, data.prize_name, data.points_cost)
    return UserEnvelope(user=user_service.user_response(user))


# ---------------------------------------------------------------------------
# Game records
# ---------------------------------------------------------------------------


@action("saveGameSession", SaveGameSessionPayload)
async def save_game_session(ctx: ActionContext, data: SaveGameSessionPayload) -> SaveGameSessionResponse:
    session, user = await game_service.save_game_session(
        ctx.db,
        ctx.actor,
        game_mode=data.game_mode,
        total_score=data.total_score,
        is_winner=data.is_winner,
        round_results=data.round_results,
        team_members=data.team_members,
    )
    return SaveGameSessionResponse(
        session=GameSessionResponse.model_validate(session),
        points_earned=data.total_score,
        user=user_service.user_response(user),
    )


@action("getLeaderboard", GetLeaderboardPayload, public=True)
async def get_leaderboard(ctx: ActionContext, data: GetLeaderboardPayload) -> LeaderboardResponse:
    rows = await game_service.get_leaderboard(ctx.db, period=data.period, limit=data.limit)
    return LeaderboardResponse(leaderboard=rows)


@action("getGameHistory", GetGameHistoryPayload)
async def get_game_history(ctx: ActionContext, data: GetGameHistoryPayload) -> GameHistoryResponse:
    sessions = await game_service.get_game_history(ctx.db, ctx.actor, limit=data.limit, offset=data.offset)
    return GameHistoryResponse(sessions=[GameSessionResponse.model_validate(s) for s in sessions])


@action("getUserStats")
async def get_user_stats(ctx: ActionContext, _data: EmptyPayload) -> UserStatsResponse:
    user, best_score, recent = await game_service.get_user_stats(ctx.db, ctx.actor)
    return UserStatsResponse(
        user=user_service.user_response(user),
        best_score=best_score,
        recent_games=[GameSessionResponse.model_validate(s) for s in recent],
    )


# ---------------------------------------------------------------------------
# Practice
# ---------------------------------------------------------------------------


@action("savePracticeProgress", SavePracticeProgressPayload)
async def save_practice_progress(ctx: ActionContext, data: SavePracticeProgressPayload) -> SuccessResponse:
    await practice_service.save_practice_progress(
        ctx.db,
        ctx.actor,
        subject=data.subject,
        questions_answered=data.questions_answered,
        correct_answers=data.correct_answers,
        time_spent=data.time_spent,
    )
    return SuccessResponse()


@action("getPracticeStats")
async def get_practice_stats(ctx: ActionContext, _data: EmptyPayload) -> PracticeStatsResponse:
    records, stats = await practice_service.get_practice_stats(ctx.db, ctx.actor)
    return PracticeStatsResponse(
        progress=[PracticeProgressResponse.model_validate(r) for r in records],
        subject_stats=stats,
    )


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


@action("saveTeam", SaveTeamPayload)
async def save_team(ctx: ActionContext, data: SaveTeamPayload) -> TeamEnvelope:
    team = await team_service.save_team(ctx.db, ctx.actor, data.team_name, data.members)
    return TeamEnvelope(team=TeamResponse.model_validate(team))


@action("getTeams")
async def get_teams(ctx: ActionContext, _data: EmptyPayload) -> TeamListResponse:
    teams = await team_service.list_teams(ctx.db, ctx.actor)
    return TeamListResponse(teams=[TeamResponse.model_validate(t) for t in teams])


@action("updateTeam", UpdateTeamPayload)
async def update_team(ctx: ActionContext, data: UpdateTeamPayload) -> TeamEnvelope:
    team = await team_service.update_team(
        ctx.db, ctx.actor, data.team_id, team_name=data.team_name, members=data.members
    )
    return TeamEnvelope(team=TeamResponse.model_validate(team))


@action("deleteTeam", TeamIdPayload)
async def delete_team(ctx: ActionContext, data: TeamIdPayload) -> SuccessResponse:
    await team_service.delete_team(ctx.db, ctx.actor, data.team_id)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@action("createChallenge")
async def create_challenge(ctx: ActionContext, _data: EmptyPayload) -> ChallengeEnvelope:
    challenge = await challenge_service.create_challenge(ctx.db, ctx.actor)
    return ChallengeEnvelope(challenge=ChallengeResponse.model_validate(challenge))


@action("joinChallenge", JoinChallengePayload)
async def join_challenge(ctx: ActionContext, data: JoinChallengePayload) -> ChallengeEnvelope:
    challenge = await challenge_service.join_challenge(ctx.db, data.challenge_code, ctx.actor)
    return ChallengeEnvelope(challenge=ChallengeResponse.model_validate(challenge))


@action("submitChallengerScore", SubmitScorePayload)
async def submit_challenger_score(ctx: ActionContext, data: SubmitScorePayload) -> ChallengeEnvelope:
    challenge = await challenge_service.submit_challenger_score(
        ctx.db, data.challenge_id, ctx.actor, data.score, data.round_results, data.team_members
    )
    return ChallengeEnvelope(challenge=ChallengeResponse.model_validate(challenge))


@action("submitOpponentScore", SubmitScorePayload)
async def submit_opponent_score(ctx: ActionContext, data: SubmitScorePayload) -> ChallengeEnvelope:
    challenge = await challenge_service.submit_opponent_score(
        ctx.db, data.challenge_id, ctx.actor, data.score, data.round_results, data.team_members
    )
    return ChallengeEnvelope(challenge=ChallengeResponse.model_validate(challenge))


@action("getChallenges")
async def get_challenges(ctx: ActionContext, _data: EmptyPayload) -> ChallengeListResponse:
    return ChallengeListResponse(challenges=await challenge_service.list_challenges(ctx.db, ctx.actor))


@action("getChallenge", GetChallengePayload)
async def get_challenge(ctx: ActionContext, data: GetChallengePayload) -> NamedChallengeEnvelope:
    challenge = await challenge_service.get_challenge(
        ctx.db, challenge_id=data.challenge_id, challenge_code=data.challenge_code
    )
    return NamedChallengeEnvelope(challenge=challenge)
