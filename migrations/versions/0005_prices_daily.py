"""daily price table read by the database price feed

Revision ID: 0005
Revises: 0004
Create Date: 2025-06-02

Run with ``ALEMBIC_DB=historical``. ``instrument_id`` holds the plain
ticker (``AAPL``, ``QQQ``).
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0005"
down_revision: Union[str, None] = "0004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "prices_daily",
        sa.Column("instrument_id", sa.String(length=50), nullable=False),
        sa.Column("trade_date", sa.Date, nullable=False),
        sa.Column("open", sa.Float, nullable=False),
        sa.Column("high", sa.Float, nullable=False),
        sa.Column("low", sa.Float, nullable=False),
        sa.Column("close", sa.Float, nullable=False),
        sa.Column("adjusted_close", sa.Float, nullable=False),
        sa.Column("volume", sa.Float, nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.PrimaryKeyConstraint("instrument_id", "trade_date", name="pk_prices_daily"),
    )
    op.create_index("idx_prices_daily_date", "prices_daily", ["trade_date"])


def downgrade() -> None:
    op.drop_index("idx_prices_daily_date", table_name="prices_daily")
    op.drop_table("prices_daily")
