"""
Toprank: Tests for Performance Summary Metrics
"""

from __future__ import annotations

import math
import statistics
from datetime import date
from typing import List

import pytest

from toprank.performance.metrics import max_drawdown, points_frame, summarize, weekly_sharpe
from toprank.performance.types import INITIAL_CAPITAL, PerformancePoint


def _point(seq: int, run_date: date, equity: float, qqq_equity: float, net: float) -> PerformancePoint:
    return PerformancePoint(
        strategy_id="s1",
        run_date=run_date,
        sequence_number=seq,
        previous_run_date=None,
        turnover=0.0,
        transaction_cost=0.0,
        gross_return=net,
        net_return=net,
        strategy_equity=equity,
        benchmark_returns={"qqq": 0.0, "qqqe": 0.0, "spy": 0.0},
        benchmark_equities={"qqq": qqq_equity, "qqqe": INITIAL_CAPITAL, "spy": INITIAL_CAPITAL},
    )


def _series() -> List[PerformancePoint]:
    return [
        _point(1, date(2025, 1, 6), 10_000.0, 10_000.0, 0.0),
        _point(2, date(2025, 1, 27), 10_500.0, 10_100.0, 0.05),
        _point(3, date(2025, 2, 24), 10_290.0, 10_200.0, -0.02),
        _point(4, date(2025, 3, 31), 11_000.0, 10_000.0, 0.069),
    ]


class TestMetrics:
    def test_max_drawdown_starts_from_initial_capital(self) -> None:
        assert max_drawdown([10_000.0, 12_000.0, 9_000.0, 13_000.0]) == pytest.approx(-0.25)
        assert max_drawdown([9_000.0]) == pytest.approx(-0.1)
        assert max_drawdown([10_500.0, 11_000.0]) == 0.0

    def test_weekly_sharpe(self) -> None:
        returns = [0.01, -0.02, 0.03, 0.005]
        expected = statistics.mean(returns) / statistics.stdev(returns) * math.sqrt(52)

        assert weekly_sharpe(returns) == pytest.approx(expected)
        assert weekly_sharpe([0.01]) is None
        assert weekly_sharpe([0.01, 0.01]) is None

    def test_points_frame_is_indexed_by_run_date(self) -> None:
        frame = points_frame(list(reversed(_series())))

        assert list(frame["sequence_number"]) == [1, 2, 3, 4]
        assert "qqq_equity" in frame.columns
        assert points_frame([]).empty

    def test_summarize(self) -> None:
        summary = summarize(_series())

        assert summary is not None
        assert summary.n_points == 4
        assert summary.strategy.total_return == pytest.approx(0.1)
        assert summary.strategy.max_drawdown == pytest.approx(10_290.0 / 10_500.0 - 1.0)
        years = (date(2025, 3, 31) - date(2025, 1, 6)).days / 365.25
        assert summary.strategy.cagr == pytest.approx(1.1 ** (1.0 / years) - 1.0)
        assert summary.benchmarks["qqq"].total_return == pytest.approx(0.0)
        # February lost to QQQ, March beat it.
        assert summary.pct_months_beating_benchmark == pytest.approx(0.5)

    def test_single_point_has_no_rates(self) -> None:
        summary = summarize(_series()[:1])

        assert summary is not None
        assert summary.strategy.cagr is None
        assert summary.sharpe is None
        assert summary.pct_months_beating_benchmark is None

    def test_empty_series(self) -> None:
        assert summarize([]) is None
