"""add_match_results_to_snapshots

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 09:00:00.000000

Add match_results column to statistics_snapshots.
Snapshots keep the results of their session so pruning live rows leaves
win/loss history intact.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # Existing snapshots start without results; live results still apply to them
    op.add_column(
        "statistics_snapshots",
        sa.Column("match_results", JSONType, nullable=False, server_default=sa.text("'[]'")),
    )


def downgrade() -> None:
    op.drop_column("statistics_snapshots", "match_results")
