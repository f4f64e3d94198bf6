"""Payload and response schemas for practice mode."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BeforeValidator, model_validator

from finalexam.errors import ValidationError
from finalexam.schemas import CamelCaseModel, Payload, RowModel, required
from finalexam.validation import validate_non_negative_int, validate_string

SUBJECT_MAX_LENGTH = 50


class SavePracticeProgressPayload(Payload):
    subject: Annotated[str, BeforeValidator(lambda v: validate_string(v, "subject", SUBJECT_MAX_LENGTH))] = required()
    questions_answered: Annotated[
        int, BeforeValidator(lambda v: validate_non_negative_int(v, "questionsAnswered"))
    ] = required()
    correct_answers: Annotated[int, BeforeValidator(lambda v: validate_non_negative_int(v, "correctAnswers"))] = (
        required()
    )
    time_spent: Annotated[int, BeforeValidator(lambda v: validate_non_negative_int(v, "timeSpent"))] = required()

    @model_validator(mode="after")
    def _correct_within_answered(self) -> SavePracticeProgressPayload:
        if self.correct_answers > self.questions_answered:
            raise ValidationError("correctAnswers cannot exceed questionsAnswered")
        return self


class PracticeProgressResponse(RowModel):
    id: str
    user_id: str
    subject: str
    questions_answered: int
    correct_answers: int
    time_spent: int
    created_at: datetime


class SubjectStats(CamelCaseModel):
    total_questions: int = 0
    total_correct: int = 0
    total_time: int = 0
    sessions: int = 0


class PracticeStatsResponse(CamelCaseModel):
    progress: list[PracticeProgressResponse]
    # Keyed by subject name, emitted as-is
    subject_stats: dict[str, SubjectStats]
