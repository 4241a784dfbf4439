"""Toprank – Signal validator.

Runs the diagnostics against scores formed on an earlier rebalance date
once the forward prices for that period exist, so the validator always
trails the live portfolio:

- the 1-week horizon uses the previous rebalance's scores and prices
  from that date to the current run date;
- the 4-week horizon uses the scores formed exactly four points earlier
  and only fires when the current sequence number is a multiple of 4,
  giving non-overlapping windows.

Instruments whose forward return cannot be priced are excluded from the
sample and recorded as issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Sequence

from toprank.core.errors import RECOVERABLE_ERRORS
from toprank.core.issues import IssueCollector
from toprank.core.logging import get_logger
from toprank.data.prices import PriceFeed, price_return
from toprank.performance.storage import PerformanceStorageLike
from toprank.performance.types import PerformancePoint
from toprank.scoring.types import ScoreRecord
from toprank.validation.diagnostics import (
    QuintileReturn,
    RegressionResult,
    SignalSample,
    cross_sectional_regression,
    quintile_returns,
    quintile_spread,
)
from toprank.validation.storage import ValidationStorageLike


logger = get_logger(__name__)

LONG_HORIZON_WEEKS = 4

# Returns the frozen score records formed on a given rebalance date.
FormationScoreLoader = Callable[[date], List[ScoreRecord]]


@dataclass(frozen=True)
class DiagnosticsResult:
    """Diagnostics for one ``(formation date, horizon)`` key."""

    formation_date: date
    evaluation_date: date
    horizon_weeks: int
    n_samples: int
    quintiles: List[QuintileReturn] = field(default_factory=list)
    regression: Optional[RegressionResult] = None
    spread: Optional[float] = None


def is_long_horizon_due(sequence_number: int) -> bool:
    """Whether the non-overlapping 4-week window closes at ``sequence_number``."""

    return sequence_number > 0 and sequence_number % LONG_HORIZON_WEEKS == 0


@dataclass
class SignalValidator:
    """Compute and persist forward-return diagnostics for a strategy."""

    price_feed: PriceFeed
    storage: ValidationStorageLike
    performance_storage: PerformanceStorageLike
    load_formation_scores: FormationScoreLoader

    def build_samples(
        self,
        records: Sequence[ScoreRecord],
        formation_date: date,
        evaluation_date: date,
        issues: IssueCollector,
    ) -> List[SignalSample]:
        samples: List[SignalSample] = []
        for record in sorted(records, key=lambda r: r.symbol):
            try:
                forward = price_return(self.price_feed, record.symbol, formation_date, evaluation_date)
            except RECOVERABLE_ERRORS as exc:
                issues.record(
                    "Forward return unavailable",
                    exc,
                    context=f"symbol={record.symbol} period={formation_date}..{evaluation_date}",
                )
                continue
            samples.append(
                SignalSample(
                    symbol=record.symbol,
                    score=float(record.score),
                    latent_rank=float(record.latent_rank),
                    forward_return=forward,
                )
            )
        return samples

    def run_horizon(
        self,
        strategy_id: str,
        formation_date: date,
        evaluation_date: date,
        horizon_weeks: int,
        issues: IssueCollector,
    ) -> Optional[DiagnosticsResult]:
        """Compute and store diagnostics for one key; ``None`` if no scores exist."""

        records = self.load_formation_scores(formation_date)
        if not records:
            logger.info(
                "SignalValidator.run_horizon: no scores formed on %s; skipping %dw diagnostics",
                formation_date,
                horizon_weeks,
            )
            return None

        samples = self.build_samples(records, formation_date, evaluation_date, issues)
        quintiles = quintile_returns(samples)
        regression = cross_sectional_regression(samples)
        self.storage.replace_diagnostics(
            strategy_id, formation_date, horizon_weeks, evaluation_date, quintiles, regression
        )

        result = DiagnosticsResult(
            formation_date=formation_date,
            evaluation_date=evaluation_date,
            horizon_weeks=horizon_weeks,
            n_samples=len(samples),
            quintiles=quintiles,
            regression=regression,
            spread=quintile_spread(quintiles),
        )
        logger.info(
            "SignalValidator.run_horizon: strategy=%s formation=%s horizon=%dw samples=%d spread=%s beta=%s",
            strategy_id,
            formation_date,
            horizon_weeks,
            result.n_samples,
            "n/a" if result.spread is None else f"{result.spread:.6f}",
            "n/a" if regression is None else f"{regression.beta:.6f}",
        )
        return result

    def validate(self, point: PerformancePoint, issues: IssueCollector) -> List[DiagnosticsResult]:
        """Run every horizon that is due at ``point``."""

        results: List[DiagnosticsResult] = []

        if point.previous_run_date is not None:
            weekly = self.run_horizon(point.strategy_id, point.previous_run_date, point.run_date, 1, issues)
            if weekly is not None:
                results.append(weekly)

        if is_long_horizon_due(point.sequence_number):
            anchor = self.performance_storage.point_by_sequence(
                point.strategy_id, point.sequence_number - LONG_HORIZON_WEEKS
            )
            if anchor is not None:
                monthly = self.run_horizon(
                    point.strategy_id, anchor.run_date, point.run_date, LONG_HORIZON_WEEKS, issues
                )
                if monthly is not None:
                    results.append(monthly)

        return results
