"""run batches and instrument scores

Revision ID: 0002
Revises: 0001
Create Date: 2025-06-02

This migration creates, in the runtime database:

- run_batches (one row per strategy and run date, with phase tracking)
- instrument_scores (write-once per batch and symbol)
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "run_batches",
        sa.Column("batch_id", sa.String(length=192), primary_key=True, nullable=False),
        sa.Column(
            "strategy_id",
            sa.String(length=64),
            sa.ForeignKey("trading_strategies.strategy_id"),
            nullable=False,
        ),
        sa.Column("run_date", sa.Date, nullable=False),
        sa.Column(
            "snapshot_id",
            sa.String(length=64),
            sa.ForeignKey("universe_snapshots.snapshot_id"),
            nullable=True,
        ),
        sa.Column("prompt_version", sa.String(length=128), nullable=True),
        sa.Column("model_name", sa.String(length=128), nullable=True),
        sa.Column("git_commit_sha", sa.String(length=64), nullable=True),
        sa.Column("phase", sa.String(length=32), nullable=False),
        sa.Column("error", postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("phase_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("phase_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("strategy_id", "run_date", name="uq_run_batches_strategy_date"),
    )

    op.create_table(
        "instrument_scores",
        sa.Column(
            "batch_id",
            sa.String(length=192),
            sa.ForeignKey("run_batches.batch_id"),
            nullable=False,
        ),
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("run_date", sa.Date, nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("latent_rank", sa.Numeric, nullable=False),
        sa.Column("confidence", sa.Numeric, nullable=False),
        sa.Column("bucket", sa.String(length=8), nullable=False),
        sa.Column("rationale", sa.Text, nullable=True),
        sa.Column("risks", postgresql.JSONB, nullable=True),
        sa.Column("bucket_change", postgresql.JSONB, nullable=True),
        sa.Column("citations", postgresql.JSONB, nullable=True),
        sa.Column("sources", postgresql.JSONB, nullable=True),
        sa.Column("is_fallback", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("batch_id", "symbol", name="pk_instrument_scores"),
        sa.CheckConstraint("score BETWEEN -5 AND 5", name="ck_instrument_scores_score"),
        sa.CheckConstraint("latent_rank BETWEEN 0 AND 1", name="ck_instrument_scores_latent_rank"),
        sa.CheckConstraint("confidence BETWEEN 0 AND 1", name="ck_instrument_scores_confidence"),
    )
    op.create_index("idx_instrument_scores_run_date", "instrument_scores", ["run_date"])


def downgrade() -> None:
    op.drop_index("idx_instrument_scores_run_date", table_name="instrument_scores")
    op.drop_table("instrument_scores")
    op.drop_table("run_batches")
