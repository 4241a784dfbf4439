"""strategy identity and universe snapshot tables

Revision ID: 0001
Revises:
Create Date: 2025-06-02

This migration creates, in the runtime database:

- trading_strategies
- universe_snapshots
- universe_snapshot_members
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "trading_strategies",
        sa.Column("strategy_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("slug", sa.String(length=128), nullable=False, unique=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("version", sa.String(length=64), nullable=False),
        sa.Column("index_name", sa.String(length=64), nullable=False),
        sa.Column("portfolio_size", sa.Integer, nullable=False),
        sa.Column("weighting_method", sa.String(length=32), nullable=False),
        sa.Column("rebalance_frequency", sa.String(length=32), nullable=False),
        sa.Column("rebalance_day_of_week", sa.Integer, nullable=False),
        sa.Column("transaction_cost_bps", sa.Numeric, nullable=False),
        sa.Column("prompt_name", sa.String(length=128), nullable=False),
        sa.Column("prompt_version", sa.String(length=128), nullable=False),
        sa.Column("model_provider", sa.String(length=64), nullable=False),
        sa.Column("model_name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "universe_snapshots",
        sa.Column("snapshot_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("index_name", sa.String(length=64), nullable=False),
        sa.Column("effective_date", sa.Date, nullable=False),
        sa.Column("membership_hash", sa.String(length=64), nullable=False),
        sa.Column("member_count", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("index_name", "membership_hash", name="uq_universe_snapshots_index_hash"),
    )
    op.create_index(
        "idx_universe_snapshots_index_date",
        "universe_snapshots",
        ["index_name", "effective_date"],
    )

    op.create_table(
        "universe_snapshot_members",
        sa.Column(
            "snapshot_id",
            sa.String(length=64),
            sa.ForeignKey("universe_snapshots.snapshot_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("company_name", sa.String(length=256), nullable=True),
        sa.PrimaryKeyConstraint("snapshot_id", "symbol", name="pk_universe_snapshot_members"),
    )


def downgrade() -> None:
    op.drop_table("universe_snapshot_members")
    op.drop_index("idx_universe_snapshots_index_date", table_name="universe_snapshots")
    op.drop_table("universe_snapshots")
    op.drop_table("trading_strategies")
