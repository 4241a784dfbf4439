"""Toprank – Benchmark period returns.

Benchmarks compound from their own price returns over the same period
as the strategy and are never charged turnover or cost. A failed price
lookup is recorded as an issue and resolved to a zero return for that
period.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, Sequence

from toprank.core.errors import RECOVERABLE_ERRORS
from toprank.core.issues import IssueCollector
from toprank.core.logging import get_logger
from toprank.data.prices import PriceFeed, price_return
from toprank.performance.types import DEFAULT_BENCHMARKS, Benchmark


logger = get_logger(__name__)


def benchmark_returns(
    price_feed: PriceFeed,
    start_date: date,
    end_date: date,
    issues: IssueCollector,
    benchmarks: Sequence[Benchmark] = DEFAULT_BENCHMARKS,
) -> Dict[str, float]:
    """Return ``{benchmark.key: period return}`` for ``start_date .. end_date``."""

    results: Dict[str, float] = {}
    for benchmark in benchmarks:
        try:
            results[benchmark.key] = price_return(price_feed, benchmark.symbol, start_date, end_date)
        except RECOVERABLE_ERRORS as exc:
            issues.record(
                "Benchmark return unavailable",
                exc,
                context=f"benchmark={benchmark.symbol} period={start_date}..{end_date}",
            )
            results[benchmark.key] = 0.0

    logger.info(
        "benchmark_returns: period=%s..%s %s",
        start_date,
        end_date,
        " ".join(f"{k}={v:.6f}" for k, v in results.items()),
    )
    return results
