"""Toprank – Portfolio holdings and rebalance action storage.

Schema (runtime DB)::

    strategy_portfolio_holdings(
        strategy_id   TEXT REFERENCES trading_strategies,
        run_date      DATE,
        batch_id      TEXT REFERENCES run_batches,
        symbol        TEXT,
        rank_position INTEGER,
        target_weight NUMERIC,
        score         INTEGER,
        latent_rank   NUMERIC,
        created_at    TIMESTAMPTZ,
        PRIMARY KEY (strategy_id, run_date, symbol)
    )

    strategy_rebalance_actions(
        strategy_id     TEXT REFERENCES trading_strategies,
        run_date        DATE,
        symbol          TEXT,
        action_type     TEXT,
        previous_weight NUMERIC,
        new_weight      NUMERIC,
        label           TEXT,
        created_at      TIMESTAMPTZ,
        PRIMARY KEY (strategy_id, run_date, symbol)
    )

Both tables are written as a complete replace per
``(strategy_id, run_date)`` inside one transaction, so re-running a date
leaves exactly one consistent set of rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Protocol, Sequence, Tuple

from toprank.core.database import DatabaseManager
from toprank.core.logging import get_logger
from toprank.portfolio.types import ActionType, Holding, RebalanceAction


logger = get_logger(__name__)


class PortfolioStorageLike(Protocol):
    """Holdings and action persistence used by the pipeline."""

    def save_holdings(
        self, strategy_id: str, run_date: date, batch_id: str, holdings: Sequence[Holding]
    ) -> None:  # pragma: no cover - interface
        ...

    def load_previous_holdings(
        self, strategy_id: str, run_date: date
    ) -> Tuple[Optional[date], List[Holding]]:  # pragma: no cover - interface
        ...

    def save_actions(
        self, strategy_id: str, run_date: date, actions: Sequence[RebalanceAction]
    ) -> None:  # pragma: no cover - interface
        ...


@dataclass
class PortfolioStorage:
    """Replace-per-date persistence for holdings and rebalance actions."""

    db_manager: DatabaseManager

    # ------------------------------------------------------------------
    # Holdings
    # ------------------------------------------------------------------

    def save_holdings(
        self, strategy_id: str, run_date: date, batch_id: str, holdings: Sequence[Holding]
    ) -> None:
        delete_sql = """
            DELETE FROM strategy_portfolio_holdings
            WHERE strategy_id = %s AND run_date = %s
        """
        insert_sql = """
            INSERT INTO strategy_portfolio_holdings (
                strategy_id,
                run_date,
                batch_id,
                symbol,
                rank_position,
                target_weight,
                score,
                latent_rank,
                created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, NOW())
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(delete_sql, (strategy_id, run_date))
                for holding in holdings:
                    cursor.execute(
                        insert_sql,
                        (
                            strategy_id,
                            run_date,
                            batch_id,
                            holding.symbol,
                            holding.rank_position,
                            holding.target_weight,
                            holding.score,
                            holding.latent_rank,
                        ),
                    )
                conn.commit()
            finally:
                cursor.close()

        logger.info(
            "PortfolioStorage.save_holdings: strategy=%s date=%s n=%d",
            strategy_id,
            run_date,
            len(holdings),
        )

    def load_holdings(self, strategy_id: str, run_date: date) -> List[Holding]:
        sql = """
            SELECT symbol, rank_position, target_weight, score, latent_rank
            FROM strategy_portfolio_holdings
            WHERE strategy_id = %s AND run_date = %s
            ORDER BY rank_position
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, (strategy_id, run_date))
                rows = cursor.fetchall()
            finally:
                cursor.close()

        return [
            Holding(
                symbol=symbol,
                rank_position=int(rank_position),
                target_weight=float(target_weight),
                score=int(score) if score is not None else None,
                latent_rank=float(latent_rank) if latent_rank is not None else None,
            )
            for symbol, rank_position, target_weight, score, latent_rank in rows
        ]

    def load_previous_holdings(
        self, strategy_id: str, run_date: date
    ) -> Tuple[Optional[date], List[Holding]]:
        """Return ``(run_date, holdings)`` of the latest rebalance before ``run_date``.

        Returns ``(None, [])`` on the first run.
        """

        sql = """
            SELECT MAX(run_date)
            FROM strategy_portfolio_holdings
            WHERE strategy_id = %s AND run_date < %s
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, (strategy_id, run_date))
                row = cursor.fetchone()
            finally:
                cursor.close()

        previous_date = row[0] if row else None
        if previous_date is None:
            return None, []
        return previous_date, self.load_holdings(strategy_id, previous_date)

    # ------------------------------------------------------------------
    # Rebalance actions
    # ------------------------------------------------------------------

    def save_actions(
        self, strategy_id: str, run_date: date, actions: Sequence[RebalanceAction]
    ) -> None:
        delete_sql = """
            DELETE FROM strategy_rebalance_actions
            WHERE strategy_id = %s AND run_date = %s
        """
        insert_sql = """
            INSERT INTO strategy_rebalance_actions (
                strategy_id,
                run_date,
                symbol,
                action_type,
                previous_weight,
                new_weight,
                label,
                created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(delete_sql, (strategy_id, run_date))
                for action in actions:
                    cursor.execute(
                        insert_sql,
                        (
                            strategy_id,
                            run_date,
                            action.symbol,
                            action.action_type.value,
                            action.previous_weight,
                            action.new_weight,
                            action.label,
                        ),
                    )
                conn.commit()
            finally:
                cursor.close()

        logger.info(
            "PortfolioStorage.save_actions: strategy=%s date=%s n=%d",
            strategy_id,
            run_date,
            len(actions),
        )

    def load_actions(self, strategy_id: str, run_date: date) -> List[RebalanceAction]:
        sql = """
            SELECT symbol, action_type, previous_weight, new_weight, label
            FROM strategy_rebalance_actions
            WHERE strategy_id = %s AND run_date = %s
            ORDER BY action_type, symbol
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, (strategy_id, run_date))
                rows = cursor.fetchall()
            finally:
                cursor.close()

        return [
            RebalanceAction(
                symbol=symbol,
                action_type=ActionType(action_type),
                previous_weight=float(previous_weight) if previous_weight is not None else None,
                new_weight=float(new_weight) if new_weight is not None else None,
                label=label or "",
            )
            for symbol, action_type, previous_weight, new_weight, label in rows
        ]
