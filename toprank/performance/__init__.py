"""Toprank – Performance accounting.

- :mod:`toprank.performance.accountant` – turnover, cost and equity compounding.
- :mod:`toprank.performance.benchmarks` – benchmark period returns.
- :mod:`toprank.performance.metrics` – read-only summary metrics.
- :mod:`toprank.performance.storage` – forward-only point persistence.
"""

from .types import DEFAULT_BENCHMARKS, EQUITY_FLOOR, INITIAL_CAPITAL, Benchmark, PerformancePoint
from .storage import PerformanceStorage, PerformanceStorageLike
from .benchmarks import benchmark_returns
from .accountant import PerformanceAccountant, compound, compute_turnover, gross_return, transaction_cost
from .metrics import PerformanceSummary, summarize

__all__ = [
    "Benchmark",
    "DEFAULT_BENCHMARKS",
    "EQUITY_FLOOR",
    "INITIAL_CAPITAL",
    "PerformanceAccountant",
    "PerformancePoint",
    "PerformanceStorage",
    "PerformanceStorageLike",
    "PerformanceSummary",
    "benchmark_returns",
    "compound",
    "compute_turnover",
    "gross_return",
    "summarize",
    "transaction_cost",
]
