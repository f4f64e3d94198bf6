"""Practice mode progress: one row per practice run, aggregated per subject on read."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from finalexam.db.models import PracticeProgress
from finalexam.practice.schemas import SubjectStats

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def save_practice_progress(
    db: AsyncSession,
    user_id: str,
    subject: str,
    questions_answered: int,
    correct_answers: int,
    time_spent: int,
) -> PracticeProgress:
    progress = PracticeProgress(
        user_id=user_id,
        subject=subject,
        questions_answered=questions_answered,
        correct_answers=correct_answers,
        time_spent=time_spent,
    )
    db.add(progress)
    await db.flush()
    logger.info("practice_progress_saved", user_id=user_id, subject=subject, questions_answered=questions_answered)
    return progress


async def get_practice_stats(
    db: AsyncSession, user_id: str
) -> tuple[list[PracticeProgress], dict[str, SubjectStats]]:
    """All of the user's practice runs, newest first, plus per-subject totals."""
    result = await db.execute(
        select(PracticeProgress)
        .where(PracticeProgress.user_id == user_id)
        .order_by(PracticeProgress.created_at.desc())
    )
    records = list(result.scalars().all())

    stats: dict[str, SubjectStats] = {}
    for record in records:
        subject = stats.setdefault(record.subject, SubjectStats())
        subject.total_questions += record.questions_answered or 0
        subject.total_correct += record.correct_answers or 0
        subject.total_time += record.time_spent or 0
        subject.sessions += 1
    return records, stats
