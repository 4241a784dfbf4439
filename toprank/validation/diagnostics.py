"""Toprank – Signal diagnostics.

Two cross-sectional checks of whether the ranking signal predicts
forward returns:

- quintile returns: samples ordered by ascending latent rank are split
  into five groups (remainder to the lowest quintiles first) and the
  mean forward return of each group is reported; a healthy signal rises
  from Q1 to Q5;
- an OLS regression of forward return on integer score, reporting
  alpha, beta and R². Fewer than :data:`MIN_REGRESSION_SAMPLES` usable
  samples or a constant score vector yields ``None``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from toprank.core.logging import get_logger


logger = get_logger(__name__)

N_QUINTILES = 5
MIN_REGRESSION_SAMPLES = 5


@dataclass(frozen=True)
class SignalSample:
    """One instrument's formation-date signal and realised forward return."""

    symbol: str
    score: float
    latent_rank: float
    forward_return: float


@dataclass(frozen=True)
class QuintileReturn:
    quintile: int
    n_members: int
    mean_forward_return: float
    min_latent_rank: float
    max_latent_rank: float


@dataclass(frozen=True)
class RegressionResult:
    alpha: float
    beta: float
    r_squared: float
    n_samples: int


def _is_finite(value: object) -> bool:
    try:
        return math.isfinite(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False


def quintile_partition_sizes(n_samples: int, n_groups: int = N_QUINTILES) -> List[int]:
    """Group sizes for ``n_samples``; the first ``n % groups`` get one extra.

    >>> quintile_partition_sizes(12)
    [3, 3, 2, 2, 2]
    """

    if n_samples < 0:
        raise ValueError(f"n_samples must be non-negative, got {n_samples}")
    base, remainder = divmod(n_samples, n_groups)
    return [base + 1 if i < remainder else base for i in range(n_groups)]


def quintile_returns(samples: Sequence[SignalSample]) -> List[QuintileReturn]:
    """Mean forward return per latent-rank quintile.

    Samples with a non-finite latent rank or forward return are dropped.
    Empty quintiles (fewer than five samples) are omitted.
    """

    usable = [s for s in samples if _is_finite(s.latent_rank) and _is_finite(s.forward_return)]
    ordered = sorted(usable, key=lambda s: (s.latent_rank, s.symbol))

    results: List[QuintileReturn] = []
    start = 0
    for index, size in enumerate(quintile_partition_sizes(len(ordered)), start=1):
        members = ordered[start:start + size]
        start += size
        if not members:
            continue
        results.append(
            QuintileReturn(
                quintile=index,
                n_members=len(members),
                mean_forward_return=math.fsum(m.forward_return for m in members) / len(members),
                min_latent_rank=members[0].latent_rank,
                max_latent_rank=members[-1].latent_rank,
            )
        )
    return results


def quintile_spread(quintiles: Sequence[QuintileReturn]) -> Optional[float]:
    """Q5 minus Q1 mean forward return, if both quintiles are populated."""

    by_index = {q.quintile: q for q in quintiles}
    if 1 not in by_index or N_QUINTILES not in by_index:
        return None
    return by_index[N_QUINTILES].mean_forward_return - by_index[1].mean_forward_return


def cross_sectional_regression(samples: Sequence[SignalSample]) -> Optional[RegressionResult]:
    """OLS of forward return on score; ``None`` in the degenerate cases."""

    usable = [s for s in samples if _is_finite(s.score) and _is_finite(s.forward_return)]
    if len(usable) < MIN_REGRESSION_SAMPLES:
        return None

    x = np.asarray([float(s.score) for s in usable], dtype=float)
    y = np.asarray([float(s.forward_return) for s in usable], dtype=float)

    x_centered = x - x.mean()
    sxx = float(np.dot(x_centered, x_centered))
    if sxx <= 0.0:
        return None

    y_centered = y - y.mean()
    beta = float(np.dot(x_centered, y_centered)) / sxx
    alpha = float(y.mean()) - beta * float(x.mean())

    ss_tot = float(np.dot(y_centered, y_centered))
    residuals = y - (alpha + beta * x)
    ss_res = float(np.dot(residuals, residuals))
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0.0 else 0.0

    return RegressionResult(alpha=alpha, beta=beta, r_squared=r_squared, n_samples=len(usable))
