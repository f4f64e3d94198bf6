"""ORM models for the Final Exam store.

Ids are server-generated UUID strings. List-valued game data (round results, team
members) is stored as JSON.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from finalexam.db.base import Base, JSONType


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """A registered player."""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("total_points >= 0", name="ck_users_total_points_non_negative"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    avatar: Mapped[str] = mapped_column(String(500), default="", server_default="")
    total_points: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    games_played: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    games_won: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    current_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


class Challenge(Base):
    """Asynchronous two-player match identified by a shareable code."""

    __tablename__ = "challenges"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'active', 'completed', 'expired')", name="ck_challenges_status"),
        CheckConstraint("opponent_id IS NULL OR opponent_id != challenger_id", name="ck_challenges_distinct_players"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    challenge_code: Mapped[str] = mapped_column(String(6), unique=True, index=True, nullable=False)
    challenger_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    opponent_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )
    question_seed: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", server_default="pending")
    challenger_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    opponent_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    challenger_round_results: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    opponent_round_results: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    challenger_team_members: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    opponent_team_members: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Game sessions & leaderboard
# ---------------------------------------------------------------------------


class GameSession(Base):
    """One completed game."""

    __tablename__ = "game_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    game_mode: Mapped[str] = mapped_column(String(50), nullable=False)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False)
    round_results: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    is_winner: Mapped[bool] = mapped_column(Boolean, default=False)
    team_members: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)


class LeaderboardEntry(Base):
    """Score posted to the leaderboard, one per saved game session."""

    __tablename__ = "leaderboard_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    period: Mapped[str] = mapped_column(String(16), default="all_time", server_default="all_time")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


class Team(Base):
    """A saved team roster."""

    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    team_name: Mapped[str] = mapped_column(String(100), nullable=False)
    members: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Prizes & practice
# ---------------------------------------------------------------------------


class PrizeRedemption(Base):
    __tablename__ = "prize_redemptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    prize_id: Mapped[str] = mapped_column(String(100), nullable=False)
    prize_name: Mapped[str] = mapped_column(String(200), nullable=False)
    points_cost: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class PracticeProgress(Base):
    __tablename__ = "practice_progress"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    subject: Mapped[str] = mapped_column(String(50), nullable=False)
    questions_answered: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
