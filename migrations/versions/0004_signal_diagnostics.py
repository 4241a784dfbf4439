"""signal diagnostics tables

Revision ID: 0004
Revises: 0003
Create Date: 2025-06-02

This migration creates, in the runtime database:

- strategy_quintile_returns
- strategy_cross_sectional_regressions

Both are keyed by (strategy, formation date, horizon in weeks) and
fully replaced when regenerated.
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0004"
down_revision: Union[str, None] = "0003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "strategy_quintile_returns",
        sa.Column(
            "strategy_id",
            sa.String(length=64),
            sa.ForeignKey("trading_strategies.strategy_id"),
            nullable=False,
        ),
        sa.Column("formation_date", sa.Date, nullable=False),
        sa.Column("horizon_weeks", sa.Integer, nullable=False),
        sa.Column("quintile", sa.Integer, nullable=False),
        sa.Column("evaluation_date", sa.Date, nullable=False),
        sa.Column("n_members", sa.Integer, nullable=False),
        sa.Column("mean_forward_return", sa.Numeric, nullable=False),
        sa.Column("min_latent_rank", sa.Numeric, nullable=True),
        sa.Column("max_latent_rank", sa.Numeric, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint(
            "strategy_id", "formation_date", "horizon_weeks", "quintile", name="pk_strategy_quintile_returns"
        ),
    )

    op.create_table(
        "strategy_cross_sectional_regressions",
        sa.Column(
            "strategy_id",
            sa.String(length=64),
            sa.ForeignKey("trading_strategies.strategy_id"),
            nullable=False,
        ),
        sa.Column("formation_date", sa.Date, nullable=False),
        sa.Column("horizon_weeks", sa.Integer, nullable=False),
        sa.Column("evaluation_date", sa.Date, nullable=False),
        sa.Column("n_samples", sa.Integer, nullable=False),
        sa.Column("alpha", sa.Numeric, nullable=False),
        sa.Column("beta", sa.Numeric, nullable=False),
        sa.Column("r_squared", sa.Numeric, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint(
            "strategy_id", "formation_date", "horizon_weeks", name="pk_strategy_cross_sectional_regressions"
        ),
    )


def downgrade() -> None:
    op.drop_table("strategy_cross_sectional_regressions")
    op.drop_table("strategy_quintile_returns")
