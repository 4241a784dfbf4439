"""Toprank – Performance accountant.

This module maintains four parallel equity curves, all seeded at
:data:`INITIAL_CAPITAL`: the strategy and one per benchmark. Each
rebalance appends exactly one :class:`PerformancePoint`:

- turnover = ½ · Σ |new_w(i) − old_w(i)| over the union of old and new
  holdings, and exactly 1.0 on the first run;
- transaction cost = turnover × bps / 10,000;
- gross return = Σ old_w(i) × r(i), where r(i) is the price return of
  each *previous* holding between the two rebalance dates;
- net return = gross return − transaction cost;
- equity[t] = max(EQUITY_FLOOR, equity[t-1] × (1 + net return)).

Points are forward-only. Recomputing the latest date reproduces the same
point (same sequence number, same equity base); computing a date earlier
than an already-recorded point is refused.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional, Sequence

from toprank.core.errors import RECOVERABLE_ERRORS, InvariantViolation
from toprank.core.issues import IssueCollector
from toprank.core.logging import get_logger
from toprank.core.types import ReturnMap
from toprank.data.prices import PriceFeed, price_return
from toprank.performance.benchmarks import benchmark_returns
from toprank.performance.storage import PerformanceStorageLike
from toprank.performance.types import (
    DEFAULT_BENCHMARKS,
    EQUITY_FLOOR,
    INITIAL_CAPITAL,
    Benchmark,
    PerformancePoint,
)


logger = get_logger(__name__)


# ============================================================================
# Pure accounting functions
# ============================================================================


def compute_turnover(previous_weights: Mapping[str, float], new_weights: Mapping[str, float]) -> float:
    """Half the L1 distance between two weight vectors, in [0, 1]."""

    if not previous_weights:
        return 1.0

    symbols = set(previous_weights) | set(new_weights)
    distance = math.fsum(
        abs(float(new_weights.get(s, 0.0)) - float(previous_weights.get(s, 0.0))) for s in symbols
    )
    return min(1.0, max(0.0, 0.5 * distance))


def transaction_cost(turnover: float, cost_bps: float) -> float:
    return turnover * (cost_bps / 10_000.0)


def gross_return(previous_weights: Mapping[str, float], returns: Mapping[str, float]) -> float:
    """Weighted return of the previous holdings; missing returns count as 0."""

    return math.fsum(float(w) * float(returns.get(s, 0.0)) for s, w in sorted(previous_weights.items()))


def compound(equity: float, period_return: float) -> float:
    """Compound ``equity`` by ``period_return`` with the equity floor applied."""

    return max(EQUITY_FLOOR, equity * (1.0 + period_return))


# ============================================================================
# Accountant
# ============================================================================


@dataclass
class PerformanceAccountant:
    """Build and persist one :class:`PerformancePoint` per rebalance."""

    storage: PerformanceStorageLike
    price_feed: PriceFeed
    transaction_cost_bps: float
    benchmarks: Sequence[Benchmark] = DEFAULT_BENCHMARKS

    def holding_returns(
        self,
        symbols: Sequence[str],
        start_date: date,
        end_date: date,
        issues: IssueCollector,
    ) -> ReturnMap:
        """Price returns of ``symbols``; failed lookups resolve to 0 with an issue."""

        returns: ReturnMap = {}
        for symbol in sorted(symbols):
            try:
                returns[symbol] = price_return(self.price_feed, symbol, start_date, end_date)
            except RECOVERABLE_ERRORS as exc:
                issues.record(
                    "Holding return unavailable",
                    exc,
                    context=f"symbol={symbol} period={start_date}..{end_date}",
                )
                returns[symbol] = 0.0
        return returns

    def ensure_forward_only(
        self, strategy_id: str, run_date: date, previous_run_date: Optional[date]
    ) -> Optional[PerformancePoint]:
        """Return the point ``run_date`` compounds on, or raise.

        ``previous_run_date`` is the date of the holdings the period's
        return is earned on. It must be the date of the last recorded
        point, otherwise a week is missing from the curve and has to be
        run first.
        """

        latest = self.storage.latest_point(strategy_id)
        if latest is not None and latest.run_date > run_date:
            raise InvariantViolation(
                f"Performance for {strategy_id} already recorded up to {latest.run_date}; "
                f"refusing to write {run_date} retroactively"
            )

        prior = self.storage.latest_point_before(strategy_id, run_date)
        prior_date = prior.run_date if prior is not None else None
        if prior_date != previous_run_date:
            raise InvariantViolation(
                f"Performance for {strategy_id} is missing the {previous_run_date} rebalance "
                f"(last recorded point: {prior_date}); run {previous_run_date} before {run_date}"
            )
        return prior

    def compute_point(
        self,
        strategy_id: str,
        run_date: date,
        previous_run_date: Optional[date],
        previous_weights: Mapping[str, float],
        new_weights: Mapping[str, float],
        issues: IssueCollector,
    ) -> PerformancePoint:
        """Compute the point for ``run_date`` without persisting it."""

        prior = self.ensure_forward_only(strategy_id, run_date, previous_run_date)
        sequence_number = prior.sequence_number + 1 if prior is not None else 1
        base_equity = prior.strategy_equity if prior is not None else INITIAL_CAPITAL

        turnover = compute_turnover(previous_weights, new_weights)
        cost = transaction_cost(turnover, self.transaction_cost_bps)

        if previous_run_date is not None and previous_weights:
            returns = self.holding_returns(list(previous_weights), previous_run_date, run_date, issues)
            gross = gross_return(previous_weights, returns)
            bench_returns = benchmark_returns(
                self.price_feed, previous_run_date, run_date, issues, self.benchmarks
            )
        else:
            gross = 0.0
            bench_returns = {b.key: 0.0 for b in self.benchmarks}

        net = gross - cost
        bench_equities = {}
        for benchmark in self.benchmarks:
            base = prior.benchmark_equities.get(benchmark.key, INITIAL_CAPITAL) if prior else INITIAL_CAPITAL
            bench_equities[benchmark.key] = compound(base, bench_returns[benchmark.key])

        point = PerformancePoint(
            strategy_id=strategy_id,
            run_date=run_date,
            sequence_number=sequence_number,
            previous_run_date=previous_run_date,
            turnover=turnover,
            transaction_cost=cost,
            gross_return=gross,
            net_return=net,
            strategy_equity=compound(base_equity, net),
            benchmark_returns=bench_returns,
            benchmark_equities=bench_equities,
        )

        logger.info(
            "PerformanceAccountant.compute_point: strategy=%s date=%s seq=%d turnover=%.4f "
            "cost=%.6f gross=%.6f net=%.6f equity=%.2f",
            strategy_id,
            run_date,
            sequence_number,
            turnover,
            cost,
            gross,
            net,
            point.strategy_equity,
        )
        return point

    def record_point(
        self,
        strategy_id: str,
        run_date: date,
        previous_run_date: Optional[date],
        previous_weights: Mapping[str, float],
        new_weights: Mapping[str, float],
        issues: IssueCollector,
    ) -> PerformancePoint:
        """Compute the point for ``run_date`` and upsert it."""

        point = self.compute_point(
            strategy_id, run_date, previous_run_date, previous_weights, new_weights, issues
        )
        self.storage.save_point(point)
        return point
