"""Toprank – Strategy persistence and version guard.

The ``trading_strategies`` table holds one row per strategy slug::

    trading_strategies(
        strategy_id           TEXT PRIMARY KEY,
        slug                  TEXT UNIQUE,
        name                  TEXT,
        version               TEXT,
        index_name            TEXT,
        portfolio_size        INTEGER,
        weighting_method      TEXT,
        rebalance_frequency   TEXT,
        rebalance_day_of_week INTEGER,
        transaction_cost_bps  NUMERIC,
        prompt_name           TEXT,
        prompt_version        TEXT,
        model_provider        TEXT,
        model_name            TEXT,
        description           TEXT,
        created_at            TIMESTAMPTZ
    )

Rows are inserted once and never updated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from toprank.core.database import DatabaseManager
from toprank.core.errors import ConfigMismatchError
from toprank.core.ids import generate_uuid
from toprank.core.logging import get_logger
from toprank.strategy.config import COMPARED_FIELDS, StrategyConfig, diff_strategy_fields


logger = get_logger(__name__)


class StrategyStorageLike(Protocol):
    """Protocol for strategy identity persistence used by the pipeline."""

    def ensure_strategy(self, config: StrategyConfig) -> str:  # pragma: no cover - interface
        """Return the strategy_id for ``config``, creating the row if needed."""


@dataclass
class StrategyStorage:
    """Persist strategy versions and reject configuration drift."""

    db_manager: DatabaseManager

    def load_strategy_row(self, slug: str) -> Optional[Dict[str, object]]:
        """Return the persisted row for ``slug`` as a dict, or ``None``."""

        columns = ["strategy_id", *COMPARED_FIELDS]
        sql = f"""
            SELECT {", ".join(columns)}
            FROM trading_strategies
            WHERE slug = %s
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, (slug,))
                row = cursor.fetchone()
            finally:
                cursor.close()

        if row is None:
            return None
        return dict(zip(columns, row))

    def ensure_strategy(self, config: StrategyConfig) -> str:
        """Return the strategy_id for ``config``.

        A missing slug is inserted. An existing slug is compared field by
        field and any difference raises :class:`ConfigMismatchError`; the
        persisted row is never modified.
        """

        existing = self.load_strategy_row(config.slug)
        if existing is not None:
            drift = diff_strategy_fields(config, existing)
            if drift:
                logger.error(
                    "StrategyStorage.ensure_strategy: slug=%s drifted fields=%s",
                    config.slug,
                    drift,
                )
                raise ConfigMismatchError(config.slug, drift)
            return str(existing["strategy_id"])

        fields = config.persisted_fields()
        columns = ["strategy_id", "slug", *COMPARED_FIELDS]
        placeholders = ", ".join(["%s"] * len(columns))
        sql = f"""
            INSERT INTO trading_strategies ({", ".join(columns)}, created_at)
            VALUES ({placeholders}, NOW())
            ON CONFLICT (slug) DO NOTHING
        """

        strategy_id = generate_uuid()
        params = (strategy_id, config.slug, *[fields[name] for name in COMPARED_FIELDS])

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, params)
                conn.commit()
            finally:
                cursor.close()

        logger.info("StrategyStorage.ensure_strategy: created slug=%s", config.slug)

        # A concurrent insert may have won the race; re-read and re-check.
        persisted = self.load_strategy_row(config.slug)
        if persisted is None:
            return strategy_id
        drift = diff_strategy_fields(config, persisted)
        if drift:
            raise ConfigMismatchError(config.slug, drift)
        return str(persisted["strategy_id"])
