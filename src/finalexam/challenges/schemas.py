"""Payload and response schemas for challenge actions."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BeforeValidator, model_validator

from finalexam.errors import ValidationError
from finalexam.schemas import (
    CamelCaseModel,
    Payload,
    RoundResults,
    RowModel,
    TeamMembers,
    optional,
    required,
)
from finalexam.validation import (
    is_encodable,
    validate_challenge_code,
    validate_non_negative_int,
    validate_string,
)

ID_MAX_LENGTH = 64


def _lookup_key(val: Any) -> Any:
    # Lookups are lenient: a badly formed key simply finds nothing
    if isinstance(val, str) and not is_encodable(val):
        return val.encode("utf-8", "backslashreplace").decode("utf-8")
    return val


def _lookup_code(val: Any) -> Any:
    val = _lookup_key(val)
    return val.strip().upper() if isinstance(val, str) else val


ChallengeId = Annotated[str, BeforeValidator(lambda v: validate_string(v, "challengeId", ID_MAX_LENGTH))]


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class JoinChallengePayload(Payload):
    challenge_code: Annotated[str, BeforeValidator(validate_challenge_code)] = required()


class SubmitScorePayload(Payload):
    """Score submission for either side of a challenge."""

    challenge_id: ChallengeId = required()
    score: Annotated[int, BeforeValidator(lambda v: validate_non_negative_int(v, "score"))] = required()
    round_results: RoundResults = optional()
    team_members: TeamMembers = optional()


class GetChallengePayload(Payload):
    challenge_id: Annotated[str | None, BeforeValidator(_lookup_key)] = None
    challenge_code: Annotated[str | None, BeforeValidator(_lookup_code)] = None

    @model_validator(mode="after")
    def _require_key(self) -> GetChallengePayload:
        if not self.challenge_id and not self.challenge_code:
            raise ValidationError("challengeId or challengeCode required")
        return self


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ChallengeResponse(RowModel):
    """A stored challenge, with its column names as-is."""

    id: str
    challenge_code: str
    challenger_id: str
    opponent_id: str | None = None
    question_seed: int
    status: str
    challenger_score: int | None = None
    opponent_score: int | None = None
    challenger_round_results: list[dict[str, Any]] = []
    opponent_round_results: list[dict[str, Any]] = []
    challenger_team_members: list[dict[str, Any]] = []
    opponent_team_members: list[dict[str, Any]] = []
    created_at: datetime
    expires_at: datetime


class NamedChallengeResponse(ChallengeResponse):
    """Challenge annotated with both players' usernames."""

    challenger_username: str
    opponent_username: str | None = None

    @classmethod
    def from_row(
        cls, challenge: Any, challenger_username: str | None, opponent_username: str | None
    ) -> NamedChallengeResponse:
        base = ChallengeResponse.model_validate(challenge)
        return cls(
            **base.model_dump(),
            challenger_username=challenger_username or "Unknown",
            opponent_username=opponent_username or None,
        )


class ChallengeEnvelope(CamelCaseModel):
    challenge: ChallengeResponse


class NamedChallengeEnvelope(CamelCaseModel):
    challenge: NamedChallengeResponse


class ChallengeListResponse(CamelCaseModel):
    challenges: list[NamedChallengeResponse]
