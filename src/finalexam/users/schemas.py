"""Schemas for the user-facing user representation, profile and prizes."""

from __future__ import annotations

from typing import Annotated

from pydantic import BeforeValidator

from finalexam.schemas import CamelCaseModel, Payload, required
from finalexam.validation import truncate_avatar, validate_non_negative_int, validate_string

DEFAULT_RANK = 999


class UserResponse(CamelCaseModel):
    """Public shape of a user. Never carries the password hash."""

    id: str
    email: str
    username: str
    avatar: str
    points: int
    rank: int
    games_played: int
    wins: int


class UserEnvelope(CamelCaseModel):
    user: UserResponse


# ---------------------------------------------------------------------------
# updateProfile
# ---------------------------------------------------------------------------


class UpdateProfilePayload(Payload):
    # Absent means "leave unchanged"; anything present is coerced, never rejected
    avatar: Annotated[str | None, BeforeValidator(truncate_avatar)] = None


# ---------------------------------------------------------------------------
# redeemPrize
# ---------------------------------------------------------------------------


class RedeemPrizePayload(Payload):
    prize_id: Annotated[str, BeforeValidator(lambda v: validate_string(v, "prizeId", 100))] = required()
    prize_name: Annotated[str, BeforeValidator(lambda v: validate_string(v, "prizeName", 200))] = required()
    points_cost: Annotated[int, BeforeValidator(lambda v: validate_non_negative_int(v, "pointsCost"))] = required()

