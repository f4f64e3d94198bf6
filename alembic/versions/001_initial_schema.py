"""Initial schema: users, challenges, game records, teams, prizes and practice.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _user_fk(nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable
    )


def upgrade() -> None:
    """Create all tables."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("avatar", sa.String(500), server_default="", nullable=False),
        sa.Column("total_points", sa.Integer(), server_default="0", nullable=False),
        sa.Column("games_played", sa.Integer(), server_default="0", nullable=False),
        sa.Column("games_won", sa.Integer(), server_default="0", nullable=False),
        sa.Column("current_rank", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )
    op.create_check_constraint("ck_users_total_points_non_negative", "users", "total_points >= 0")

    # --- challenges ---
    op.create_table(
        "challenges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("challenge_code", sa.String(6), nullable=False),
        sa.Column(
            "challenger_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("opponent_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("question_seed", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("challenger_score", sa.Integer(), nullable=True),
        sa.Column("opponent_score", sa.Integer(), nullable=True),
        sa.Column("challenger_round_results", JSON, nullable=True),
        sa.Column("opponent_round_results", JSON, nullable=True),
        sa.Column("challenger_team_members", JSON, nullable=True),
        sa.Column("opponent_team_members", JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_challenges_challenge_code", "challenges", ["challenge_code"], unique=True)
    op.create_index("ix_challenges_challenger_id", "challenges", ["challenger_id"])
    op.create_index("ix_challenges_opponent_id", "challenges", ["opponent_id"])
    op.create_check_constraint(
        "ck_challenges_status", "challenges", "status IN ('pending', 'active', 'completed', 'expired')"
    )
    op.create_check_constraint(
        "ck_challenges_distinct_players", "challenges", "opponent_id IS NULL OR opponent_id != challenger_id"
    )

    # --- game_sessions ---
    op.create_table(
        "game_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column("game_mode", sa.String(50), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=False),
        sa.Column("round_results", JSON, nullable=True),
        sa.Column("is_winner", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("team_members", JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_game_sessions_user_id", "game_sessions", ["user_id"])
    op.create_index("ix_game_sessions_created_at", "game_sessions", ["created_at"])

    # --- leaderboard_entries ---
    op.create_table(
        "leaderboard_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("period", sa.String(16), server_default="all_time", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_leaderboard_entries_user_id", "leaderboard_entries", ["user_id"])
    op.create_index("ix_leaderboard_entries_score", "leaderboard_entries", ["score"])
    op.create_index("ix_leaderboard_entries_created_at", "leaderboard_entries", ["created_at"])

    # --- teams ---
    op.create_table(
        "teams",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("team_name", sa.String(100), nullable=False),
        sa.Column("members", JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teams_owner_id", "teams", ["owner_id"])

    # --- prize_redemptions ---
    op.create_table(
        "prize_redemptions",
        sa.Column("id", sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column("prize_id", sa.String(100), nullable=False),
        sa.Column("prize_name", sa.String(200), nullable=False),
        sa.Column("points_cost", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_prize_redemptions_user_id", "prize_redemptions", ["user_id"])

    # --- practice_progress ---
    op.create_table(
        "practice_progress",
        sa.Column("id", sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column("subject", sa.String(50), nullable=False),
        sa.Column("questions_answered", sa.Integer(), server_default="0", nullable=False),
        sa.Column("correct_answers", sa.Integer(), server_default="0", nullable=False),
        sa.Column("time_spent", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_practice_progress_user_id", "practice_progress", ["user_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("practice_progress")
    op.drop_table("prize_redemptions")
    op.drop_table("teams")
    op.drop_table("leaderboard_entries")
    op.drop_table("game_sessions")
    op.drop_table("challenges")
    op.drop_table("users")
