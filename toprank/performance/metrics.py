"""Toprank – Summary metrics over the recorded performance series.

Read-only reporting over persisted :class:`PerformancePoint` rows:
total return, CAGR, max drawdown, annualised weekly Sharpe and the share
of calendar months in which the strategy beat the cap-weighted
benchmark. Nothing here simulates history; every number is derived from
points the pipeline has already written.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import sqrt
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from toprank.core.logging import get_logger
from toprank.performance.types import DEFAULT_BENCHMARKS, INITIAL_CAPITAL, Benchmark, PerformancePoint


logger = get_logger(__name__)

WEEKS_PER_YEAR = 52
DAYS_PER_YEAR = 365.25


@dataclass(frozen=True)
class CurveSummary:
    """Summary statistics for one equity curve."""

    total_return: float
    cagr: Optional[float]
    max_drawdown: float


@dataclass(frozen=True)
class PerformanceSummary:
    """Summary of a strategy's recorded performance."""

    n_points: int
    strategy: CurveSummary
    benchmarks: Dict[str, CurveSummary]
    sharpe: Optional[float]
    pct_months_beating_benchmark: Optional[float]


def points_frame(points: Sequence[PerformancePoint], benchmarks: Sequence[Benchmark] = DEFAULT_BENCHMARKS) -> pd.DataFrame:
    """Return the series as a DataFrame indexed by run date."""

    rows = []
    for p in points:
        row = {
            "run_date": pd.Timestamp(p.run_date),
            "sequence_number": p.sequence_number,
            "turnover": p.turnover,
            "transaction_cost": p.transaction_cost,
            "gross_return": p.gross_return,
            "net_return": p.net_return,
            "strategy_equity": p.strategy_equity,
        }
        for b in benchmarks:
            row[f"{b.key}_return"] = p.benchmark_returns.get(b.key, 0.0)
            row[f"{b.key}_equity"] = p.benchmark_equities.get(b.key, INITIAL_CAPITAL)
        rows.append(row)

    if not rows:
        return pd.DataFrame()
    return pd.DataFrame(rows).set_index("run_date").sort_index()


def max_drawdown(equity: Sequence[float]) -> float:
    """Largest peak-to-trough decline as a non-positive fraction."""

    peak = INITIAL_CAPITAL
    worst = 0.0
    for value in equity:
        peak = max(peak, float(value))
        worst = min(worst, float(value) / peak - 1.0)
    return worst


def curve_summary(equity: pd.Series) -> CurveSummary:
    end_value = float(equity.iloc[-1])
    total_return = end_value / INITIAL_CAPITAL - 1.0

    years = (equity.index[-1] - equity.index[0]).days / DAYS_PER_YEAR
    cagr: Optional[float] = None
    if years > 0.0 and end_value > 0.0:
        cagr = (end_value / INITIAL_CAPITAL) ** (1.0 / years) - 1.0

    return CurveSummary(total_return=total_return, cagr=cagr, max_drawdown=max_drawdown(equity.tolist()))


def weekly_sharpe(net_returns: Sequence[float]) -> Optional[float]:
    """Annualised Sharpe of weekly returns (sample std, zero risk-free)."""

    if len(net_returns) < 2:
        return None
    values = np.asarray(net_returns, dtype=float)
    std = float(np.std(values, ddof=1))
    if not std > 0.0:
        return None
    return float(np.mean(values)) / std * sqrt(WEEKS_PER_YEAR)


def pct_months_beating(frame: pd.DataFrame, benchmark_key: str) -> Optional[float]:
    """Fraction of calendar months where the strategy out-returned the benchmark."""

    month_end = frame.groupby(frame.index.to_period("M")).last()
    if len(month_end) < 2:
        return None

    equity = month_end[["strategy_equity", f"{benchmark_key}_equity"]]
    monthly = (equity / equity.shift(1) - 1.0).dropna()
    if monthly.empty:
        return None
    beat = monthly["strategy_equity"] > monthly[f"{benchmark_key}_equity"]
    return float(beat.mean())


def summarize(
    points: Sequence[PerformancePoint],
    benchmarks: Sequence[Benchmark] = DEFAULT_BENCHMARKS,
) -> Optional[PerformanceSummary]:
    """Return a :class:`PerformanceSummary`, or ``None`` for an empty series."""

    frame = points_frame(points, benchmarks)
    if frame.empty:
        return None

    summary = PerformanceSummary(
        n_points=len(frame),
        strategy=curve_summary(frame["strategy_equity"]),
        benchmarks={b.key: curve_summary(frame[f"{b.key}_equity"]) for b in benchmarks},
        sharpe=weekly_sharpe(frame["net_return"].tolist()),
        pct_months_beating_benchmark=(
            pct_months_beating(frame, benchmarks[0].key) if benchmarks else None
        ),
    )
    logger.info(
        "summarize: points=%d total_return=%.4f max_dd=%.4f",
        summary.n_points,
        summary.strategy.total_return,
        summary.strategy.max_drawdown,
    )
    return summary
