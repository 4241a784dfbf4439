"""Toprank – Performance core types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional


INITIAL_CAPITAL = 10_000.0
EQUITY_FLOOR = 0.01


@dataclass(frozen=True)
class Benchmark:
    """A benchmark equity curve priced through the price feed.

    Attributes:
        key: Short identifier used in column names (``qqq`` gives
            ``qqq_return`` and ``qqq_equity``).
        symbol: Ticker of the proxy instrument.
        label: Human-readable name.
    """

    key: str
    symbol: str
    label: str


DEFAULT_BENCHMARKS: tuple[Benchmark, ...] = (
    Benchmark(key="qqq", symbol="QQQ", label="Nasdaq-100 (cap-weighted)"),
    Benchmark(key="qqqe", symbol="QQQE", label="Nasdaq-100 (equal-weighted)"),
    Benchmark(key="spy", symbol="SPY", label="S&P 500"),
)


@dataclass(frozen=True)
class PerformancePoint:
    """One weekly point of the strategy and benchmark equity curves.

    ``gross_return`` is earned by the *previous* holdings over
    ``previous_run_date .. run_date``; ``transaction_cost`` is charged
    for moving into the holdings selected on ``run_date``.
    """

    strategy_id: str
    run_date: date
    sequence_number: int
    previous_run_date: Optional[date]
    turnover: float
    transaction_cost: float
    gross_return: float
    net_return: float
    strategy_equity: float
    benchmark_returns: Dict[str, float] = field(default_factory=dict)
    benchmark_equities: Dict[str, float] = field(default_factory=dict)
