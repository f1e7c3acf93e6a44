"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 12:00:00.000000

Initial schema: players, courts, training sessions, check-ins, matches,
match players, match results and statistics snapshots.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

session_status = sa.Enum("ACTIVE", "ENDED", name="sessionstatus")
sport = sa.Enum("BADMINTON", "TENNIS", "PADEL", name="sport")
winner_team = sa.Enum("TEAM1", "TEAM2", name="winnerteam")


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "players",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("level", sa.Float(), nullable=True),
        sa.Column("training_groups", JSONType, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_players_name", "players", ["name"])

    op.create_table(
        "courts",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("idx", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "training_sessions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("date", sa.String(), nullable=False),
        sa.Column("status", session_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_training_sessions_status", "training_sessions", ["status"])
    op.create_index("idx_training_sessions_date", "training_sessions", ["date"])

    op.create_table(
        "check_ins",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("session_id", sa.String(), sa.ForeignKey("training_sessions.id"), nullable=False),
        sa.Column("player_id", sa.String(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("max_rounds", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("session_id", "player_id", name="uq_check_ins_session_player"),
    )
    op.create_index("idx_check_ins_session", "check_ins", ["session_id"])

    op.create_table(
        "matches",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("session_id", sa.String(), sa.ForeignKey("training_sessions.id"), nullable=False),
        sa.Column("court_id", sa.String(), sa.ForeignKey("courts.id"), nullable=True),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_matches_session", "matches", ["session_id"])

    op.create_table(
        "match_players",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "match_id", sa.String(), sa.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("player_id", sa.String(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("slot", sa.Integer(), nullable=False),
    )
    op.create_index("idx_match_players_match", "match_players", ["match_id"])

    op.create_table(
        "match_results",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "match_id", sa.String(), sa.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("sport", sport, nullable=False),
        sa.Column("score_data", JSONType, nullable=True),
        sa.Column("winner_team", winner_team, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("match_id", name="uq_match_results_match"),
    )

    op.create_table(
        "statistics_snapshots",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("session_id", sa.String(), sa.ForeignKey("training_sessions.id"), nullable=False),
        sa.Column("session_date", sa.String(), nullable=False),
        sa.Column("season", sa.String(), nullable=False),
        sa.Column("matches", JSONType, nullable=False),
        sa.Column("match_players", JSONType, nullable=False),
        sa.Column("check_ins", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("session_id", name="uq_statistics_snapshots_session"),
    )
    op.create_index("idx_statistics_snapshots_season", "statistics_snapshots", ["season"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("statistics_snapshots")
    op.drop_table("match_results")
    op.drop_table("match_players")
    op.drop_table("matches")
    op.drop_table("check_ins")
    op.drop_table("training_sessions")
    op.drop_table("courts")
    op.drop_table("players")
    bind = op.get_bind()
    for enum_type in (winner_team, sport, session_status):
        enum_type.drop(bind, checkfirst=True)
