"""portfolio holdings, rebalance actions and weekly performance

Revision ID: 0003
Revises: 0002
Create Date: 2025-06-02

This migration creates, in the runtime database:

- strategy_portfolio_holdings (replaced per strategy and run date)
- strategy_rebalance_actions (replaced per strategy and run date)
- strategy_performance_weekly (one forward-only point per run)
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0003"
down_revision: Union[str, None] = "0002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BENCHMARK_KEYS = ("qqq", "qqqe", "spy")


def upgrade() -> None:
    op.create_table(
        "strategy_portfolio_holdings",
        sa.Column(
            "strategy_id",
            sa.String(length=64),
            sa.ForeignKey("trading_strategies.strategy_id"),
            nullable=False,
        ),
        sa.Column("run_date", sa.Date, nullable=False),
        sa.Column("batch_id", sa.String(length=192), sa.ForeignKey("run_batches.batch_id"), nullable=False),
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("rank_position", sa.Integer, nullable=False),
        sa.Column("target_weight", sa.Numeric, nullable=False),
        sa.Column("score", sa.Integer, nullable=True),
        sa.Column("latent_rank", sa.Numeric, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("strategy_id", "run_date", "symbol", name="pk_strategy_portfolio_holdings"),
    )

    op.create_table(
        "strategy_rebalance_actions",
        sa.Column(
            "strategy_id",
            sa.String(length=64),
            sa.ForeignKey("trading_strategies.strategy_id"),
            nullable=False,
        ),
        sa.Column("run_date", sa.Date, nullable=False),
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("action_type", sa.String(length=16), nullable=False),
        sa.Column("previous_weight", sa.Numeric, nullable=True),
        sa.Column("new_weight", sa.Numeric, nullable=True),
        sa.Column("label", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("strategy_id", "run_date", "symbol", name="pk_strategy_rebalance_actions"),
        sa.CheckConstraint(
            "action_type IN ('enter', 'exit_rank', 'exit_index')",
            name="ck_strategy_rebalance_actions_type",
        ),
    )

    benchmark_columns = []
    for key in BENCHMARK_KEYS:
        benchmark_columns.append(sa.Column(f"{key}_return", sa.Numeric, nullable=True))
        benchmark_columns.append(sa.Column(f"{key}_equity", sa.Numeric, nullable=False))

    op.create_table(
        "strategy_performance_weekly",
        sa.Column(
            "strategy_id",
            sa.String(length=64),
            sa.ForeignKey("trading_strategies.strategy_id"),
            nullable=False,
        ),
        sa.Column("run_date", sa.Date, nullable=False),
        sa.Column("sequence_number", sa.Integer, nullable=False),
        sa.Column("previous_run_date", sa.Date, nullable=True),
        sa.Column("turnover", sa.Numeric, nullable=False),
        sa.Column("transaction_cost", sa.Numeric, nullable=False),
        sa.Column("gross_return", sa.Numeric, nullable=False),
        sa.Column("net_return", sa.Numeric, nullable=False),
        sa.Column("strategy_equity", sa.Numeric, nullable=False),
        *benchmark_columns,
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("strategy_id", "run_date", name="pk_strategy_performance_weekly"),
        sa.UniqueConstraint("strategy_id", "sequence_number", name="uq_strategy_performance_weekly_seq"),
        sa.CheckConstraint("turnover BETWEEN 0 AND 1", name="ck_strategy_performance_weekly_turnover"),
    )


def downgrade() -> None:
    op.drop_table("strategy_performance_weekly")
    op.drop_table("strategy_rebalance_actions")
    op.drop_table("strategy_portfolio_holdings")
