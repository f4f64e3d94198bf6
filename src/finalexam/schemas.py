"""Base models for action payloads and responses.

Payload and envelope fields are camelCase on the wire (``totalScore``, ``gamesPlayed``).
Stored rows (challenges, sessions, teams) are returned with their snake_case column names.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from finalexam.validation import validate_members, validate_round_results


class CamelCaseModel(BaseModel):
    """Accepts and emits camelCase while keeping snake_case attribute names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Payload(CamelCaseModel):
    """Base class for the ``data`` object of an action. Unknown keys are ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class EmptyPayload(Payload):
    """For actions that take no input."""


class RowModel(BaseModel):
    """Response model built from an ORM row."""

    model_config = ConfigDict(from_attributes=True)


class SuccessResponse(CamelCaseModel):
    success: bool = True


def required() -> Any:
    """Field default for payload fields whose validator must also see missing values.

    The field's ``BeforeValidator`` runs on ``None`` and raises its own
    "<field> must be a string" style message.
    """
    return Field(default=None, validate_default=True)


def optional() -> Any:
    """Field default for optional list fields whose validator turns a missing value into ``[]``."""
    return Field(default=None, validate_default=True)


def _optional_round_results(val: Any) -> list[dict[str, Any]]:
    return [] if val is None else list(validate_round_results(val))


def _optional_team_members(val: Any) -> list[dict[str, Any]]:
    return [] if val is None else list(validate_members(val, "teamMembers"))


# Stored as JSON; the validators already normalize every entry
RoundResults = Annotated[list[dict[str, Any]], BeforeValidator(_optional_round_results)]
TeamMembers = Annotated[list[dict[str, Any]], BeforeValidator(_optional_team_members)]
