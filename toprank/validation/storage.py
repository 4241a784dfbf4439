"""Toprank – Signal diagnostic storage.

Schema (runtime DB)::

    strategy_quintile_returns(
        strategy_id         TEXT REFERENCES trading_strategies,
        formation_date      DATE,
        horizon_weeks       INTEGER,
        quintile            INTEGER,
        evaluation_date     DATE,
        n_members           INTEGER,
        mean_forward_return NUMERIC,
        min_latent_rank     NUMERIC,
        max_latent_rank     NUMERIC,
        created_at          TIMESTAMPTZ,
        PRIMARY KEY (strategy_id, formation_date, horizon_weeks, quintile)
    )

    strategy_cross_sectional_regressions(
        strategy_id     TEXT REFERENCES trading_strategies,
        formation_date  DATE,
        horizon_weeks   INTEGER,
        evaluation_date DATE,
        n_samples       INTEGER,
        alpha           NUMERIC,
        beta            NUMERIC,
        r_squared       NUMERIC,
        created_at      TIMESTAMPTZ,
        PRIMARY KEY (strategy_id, formation_date, horizon_weeks)
    )

Diagnostics are regenerated, never accumulated: every write replaces all
rows for ``(strategy_id, formation_date, horizon_weeks)``. A degenerate
regression leaves no row for its key.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol, Sequence

from toprank.core.database import DatabaseManager
from toprank.core.logging import get_logger
from toprank.validation.diagnostics import QuintileReturn, RegressionResult


logger = get_logger(__name__)


class ValidationStorageLike(Protocol):
    def replace_diagnostics(
        self,
        strategy_id: str,
        formation_date: date,
        horizon_weeks: int,
        evaluation_date: date,
        quintiles: Sequence[QuintileReturn],
        regression: Optional[RegressionResult],
    ) -> None:  # pragma: no cover - interface
        ...


@dataclass
class ValidationStorage:
    """Replace-per-key persistence for quintile and regression diagnostics."""

    db_manager: DatabaseManager

    def replace_diagnostics(
        self,
        strategy_id: str,
        formation_date: date,
        horizon_weeks: int,
        evaluation_date: date,
        quintiles: Sequence[QuintileReturn],
        regression: Optional[RegressionResult],
    ) -> None:
        key = (strategy_id, formation_date, horizon_weeks)

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    DELETE FROM strategy_quintile_returns
                    WHERE strategy_id = %s AND formation_date = %s AND horizon_weeks = %s
                    """,
                    key,
                )
                for q in quintiles:
                    cursor.execute(
                        """
                        INSERT INTO strategy_quintile_returns (
                            strategy_id,
                            formation_date,
                            horizon_weeks,
                            quintile,
                            evaluation_date,
                            n_members,
                            mean_forward_return,
                            min_latent_rank,
                            max_latent_rank,
                            created_at
                        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
                        """,
                        (
                            *key,
                            q.quintile,
                            evaluation_date,
                            q.n_members,
                            q.mean_forward_return,
                            q.min_latent_rank,
                            q.max_latent_rank,
                        ),
                    )

                cursor.execute(
                    """
                    DELETE FROM strategy_cross_sectional_regressions
                    WHERE strategy_id = %s AND formation_date = %s AND horizon_weeks = %s
                    """,
                    key,
                )
                if regression is not None:
                    cursor.execute(
                        """
                        INSERT INTO strategy_cross_sectional_regressions (
                            strategy_id,
                            formation_date,
                            horizon_weeks,
                            evaluation_date,
                            n_samples,
                            alpha,
                            beta,
                            r_squared,
                            created_at
                        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, NOW())
                        """,
                        (
                            *key,
                            evaluation_date,
                            regression.n_samples,
                            regression.alpha,
                            regression.beta,
                            regression.r_squared,
                        ),
                    )
                conn.commit()
            finally:
                cursor.close()

        logger.info(
            "ValidationStorage.replace_diagnostics: strategy=%s formation=%s horizon=%dw quintiles=%d regression=%s",
            strategy_id,
            formation_date,
            horizon_weeks,
            len(quintiles),
            regression is not None,
        )
