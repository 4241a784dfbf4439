"""Toprank – Portfolio constructor.

Selection uses a total order over scored instruments so the result is
reproducible bit for bit from the same inputs, independent of input
order:

1. latent rank, descending;
2. integer score, descending;
3. symbol, ascending.

The first N instruments are held at exactly ``1 / N`` each. Any other
holding count is a fatal :class:`InvariantViolation`.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Sequence, Tuple

from toprank.core.errors import InvariantViolation
from toprank.core.logging import get_logger
from toprank.core.types import WeightMap
from toprank.portfolio.types import Holding
from toprank.scoring.types import ScoreRecord


logger = get_logger(__name__)

WEIGHT_TOLERANCE = 1e-9


def ranking_key(record: ScoreRecord) -> Tuple[float, int, str]:
    """Sort key implementing the portfolio's total order."""

    return (-record.latent_rank, -record.score, record.symbol)


def rank_scores(records: Iterable[ScoreRecord]) -> List[ScoreRecord]:
    """Return ``records`` in ranking order."""

    return sorted(records, key=ranking_key)


def build_holdings(records: Sequence[ScoreRecord], portfolio_size: int) -> List[Holding]:
    """Select the top ``portfolio_size`` instruments at equal weight.

    Raises:
        InvariantViolation: If fewer than ``portfolio_size`` instruments
            are available or ``portfolio_size`` is not positive.
    """

    if portfolio_size <= 0:
        raise InvariantViolation(f"Portfolio size must be positive, got {portfolio_size}")

    ranked = rank_scores(records)
    selected = ranked[:portfolio_size]
    if len(selected) != portfolio_size:
        raise InvariantViolation(
            f"Expected {portfolio_size} holdings but only {len(selected)} scored instruments are available"
        )

    weight = 1.0 / portfolio_size
    holdings = [
        Holding(
            symbol=record.symbol,
            rank_position=position,
            target_weight=weight,
            score=record.score,
            latent_rank=record.latent_rank,
        )
        for position, record in enumerate(selected, start=1)
    ]

    validate_holdings(holdings, portfolio_size)
    logger.info(
        "build_holdings: selected=%d top=%s",
        len(holdings),
        ",".join(h.symbol for h in holdings[:5]),
    )
    return holdings


def validate_holdings(holdings: Sequence[Holding], portfolio_size: int) -> None:
    """Check the size and weight-sum invariants of a holding set."""

    if len(holdings) != portfolio_size:
        raise InvariantViolation(f"Expected {portfolio_size} holdings, got {len(holdings)}")

    symbols = {h.symbol for h in holdings}
    if len(symbols) != len(holdings):
        raise InvariantViolation("Holdings contain duplicate symbols")

    total = math.fsum(h.target_weight for h in holdings)
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise InvariantViolation(f"Holding weights sum to {total!r}, expected 1.0")


def weights_of(holdings: Iterable[Holding]) -> WeightMap:
    """Return a ``symbol -> target_weight`` map."""

    return {h.symbol: h.target_weight for h in holdings}
