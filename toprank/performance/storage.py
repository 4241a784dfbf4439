"""Toprank – Performance point storage.

Schema (runtime DB)::

    strategy_performance_weekly(
        strategy_id       TEXT REFERENCES trading_strategies,
        run_date          DATE,
        sequence_number   INTEGER,
        previous_run_date DATE,
        turnover          NUMERIC,
        transaction_cost  NUMERIC,
        gross_return      NUMERIC,
        net_return        NUMERIC,
        strategy_equity   NUMERIC,
        qqq_return        NUMERIC,
        qqq_equity        NUMERIC,
        qqqe_return       NUMERIC,
        qqqe_equity       NUMERIC,
        spy_return        NUMERIC,
        spy_equity        NUMERIC,
        created_at        TIMESTAMPTZ,
        updated_at        TIMESTAMPTZ,
        PRIMARY KEY (strategy_id, run_date),
        UNIQUE (strategy_id, sequence_number)
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Protocol, Sequence

from toprank.core.database import DatabaseManager
from toprank.core.logging import get_logger
from toprank.performance.types import DEFAULT_BENCHMARKS, Benchmark, PerformancePoint


logger = get_logger(__name__)

_BASE_COLUMNS = [
    "strategy_id",
    "run_date",
    "sequence_number",
    "previous_run_date",
    "turnover",
    "transaction_cost",
    "gross_return",
    "net_return",
    "strategy_equity",
]


class PerformanceStorageLike(Protocol):
    """Performance persistence used by the accountant and validator."""

    def save_point(self, point: PerformancePoint) -> None:  # pragma: no cover - interface
        ...

    def latest_point(self, strategy_id: str) -> Optional[PerformancePoint]:  # pragma: no cover - interface
        ...

    def latest_point_before(
        self, strategy_id: str, run_date: date
    ) -> Optional[PerformancePoint]:  # pragma: no cover - interface
        ...

    def point_by_sequence(
        self, strategy_id: str, sequence_number: int
    ) -> Optional[PerformancePoint]:  # pragma: no cover - interface
        ...


@dataclass
class PerformanceStorage:
    """Upsert-by-``(strategy_id, run_date)`` persistence for performance points."""

    db_manager: DatabaseManager
    benchmarks: Sequence[Benchmark] = DEFAULT_BENCHMARKS

    def _columns(self) -> List[str]:
        columns = list(_BASE_COLUMNS)
        for benchmark in self.benchmarks:
            columns.extend([f"{benchmark.key}_return", f"{benchmark.key}_equity"])
        return columns

    def _row_to_point(self, row: Sequence[object]) -> PerformancePoint:
        values = dict(zip(self._columns(), row))
        return PerformancePoint(
            strategy_id=str(values["strategy_id"]),
            run_date=values["run_date"],  # type: ignore[arg-type]
            sequence_number=int(values["sequence_number"]),  # type: ignore[arg-type]
            previous_run_date=values["previous_run_date"],  # type: ignore[arg-type]
            turnover=float(values["turnover"]),  # type: ignore[arg-type]
            transaction_cost=float(values["transaction_cost"]),  # type: ignore[arg-type]
            gross_return=float(values["gross_return"]),  # type: ignore[arg-type]
            net_return=float(values["net_return"]),  # type: ignore[arg-type]
            strategy_equity=float(values["strategy_equity"]),  # type: ignore[arg-type]
            benchmark_returns={
                b.key: float(values[f"{b.key}_return"] or 0.0) for b in self.benchmarks  # type: ignore[arg-type]
            },
            benchmark_equities={
                b.key: float(values[f"{b.key}_equity"]) for b in self.benchmarks  # type: ignore[arg-type]
            },
        )

    def _fetch(self, where: str, params: tuple, order: str, limit: Optional[int]) -> List[PerformancePoint]:
        sql = f"""
            SELECT {", ".join(self._columns())}
            FROM strategy_performance_weekly
            WHERE {where}
            ORDER BY {order}
        """
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, params)
                rows = cursor.fetchall()
            finally:
                cursor.close()

        return [self._row_to_point(row) for row in rows]

    def save_point(self, point: PerformancePoint) -> None:
        columns = self._columns()
        values: List[object] = [
            point.strategy_id,
            point.run_date,
            point.sequence_number,
            point.previous_run_date,
            point.turnover,
            point.transaction_cost,
            point.gross_return,
            point.net_return,
            point.strategy_equity,
        ]
        for benchmark in self.benchmarks:
            values.append(point.benchmark_returns.get(benchmark.key, 0.0))
            values.append(point.benchmark_equities[benchmark.key])

        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns if c not in ("strategy_id", "run_date"))
        sql = f"""
            INSERT INTO strategy_performance_weekly (
                {", ".join(columns)}, created_at, updated_at
            ) VALUES ({", ".join(["%s"] * len(columns))}, NOW(), NOW())
            ON CONFLICT (strategy_id, run_date) DO UPDATE
            SET {updates}, updated_at = NOW()
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, tuple(values))
                conn.commit()
            finally:
                cursor.close()

        logger.info(
            "PerformanceStorage.save_point: strategy=%s date=%s seq=%d",
            point.strategy_id,
            point.run_date,
            point.sequence_number,
        )

    def latest_point(self, strategy_id: str) -> Optional[PerformancePoint]:
        points = self._fetch("strategy_id = %s", (strategy_id,), "run_date DESC", 1)
        return points[0] if points else None

    def latest_point_before(self, strategy_id: str, run_date: date) -> Optional[PerformancePoint]:
        points = self._fetch(
            "strategy_id = %s AND run_date < %s", (strategy_id, run_date), "run_date DESC", 1
        )
        return points[0] if points else None

    def point_by_sequence(self, strategy_id: str, sequence_number: int) -> Optional[PerformancePoint]:
        points = self._fetch(
            "strategy_id = %s AND sequence_number = %s", (strategy_id, sequence_number), "run_date", 1
        )
        return points[0] if points else None

    def load_series(self, strategy_id: str) -> List[PerformancePoint]:
        """Return every point for ``strategy_id`` in run-date order."""

        return self._fetch("strategy_id = %s", (strategy_id,), "run_date ASC", None)
