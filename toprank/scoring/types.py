"""Toprank – Scoring core types.

This module defines the per-instrument :class:`ScoreRecord`, the
previous-run context passed to the oracle, and the pure helpers that
normalise oracle output into valid domains.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Literal, Optional, Tuple

from toprank.core.types import MetadataDict


Bucket = Literal["buy", "hold", "sell"]

SCORE_MIN = -5
SCORE_MAX = 5
BUY_THRESHOLD = 2
SELL_THRESHOLD = -2

FALLBACK_RATIONALE = "Model evaluation unavailable due to an error."
FALLBACK_RISKS: Tuple[str, ...] = ("Data unavailable", "Model error")


def bucket_from_score(score: float) -> Bucket:
    """Map a score to its buy/hold/sell bucket."""

    if score >= BUY_THRESHOLD:
        return "buy"
    if score <= SELL_THRESHOLD:
        return "sell"
    return "hold"


def clamp_score(score: float) -> int:
    """Round and bound a score into ``[-5, 5]``; non-finite values map to 0."""

    value = float(score)
    if math.isnan(value):
        return 0
    if math.isinf(value):
        return SCORE_MAX if value > 0 else SCORE_MIN
    return int(max(SCORE_MIN, min(SCORE_MAX, round(value))))


def clamp_unit(value: float, default: float = 0.0) -> float:
    """Bound a value into ``[0, 1]``; NaN maps to ``default``."""

    numeric = float(value)
    if math.isnan(numeric):
        return default
    return max(0.0, min(1.0, numeric))


@dataclass(frozen=True)
class PreviousRating:
    """Score and bucket of an instrument in the previous run."""

    score: Optional[int] = None
    bucket: Optional[Bucket] = None


@dataclass(frozen=True)
class ScoreRecord:
    """Normalised oracle output for one instrument in one run.

    Attributes:
        symbol: Instrument symbol.
        run_date: Rebalance date of the run that produced the score.
        score: Integer score in ``[-5, 5]``.
        latent_rank: Fine-grained ordinal signal in ``[0, 1]``.
        confidence: Oracle confidence in ``[0, 1]``.
        bucket: buy/hold/sell derived from ``score``.
        rationale: One-sentence explanation.
        risks: Key risks named by the oracle.
        bucket_change: Oracle's view of the bucket transition.
        citations: Deduplicated ``{"url", "title"}`` dicts.
        sources: Raw web-search sources, deduplicated by URL.
        is_fallback: ``True`` when the neutral fallback was substituted.
        metadata: Diagnostics such as the raw response or the error.
    """

    symbol: str
    run_date: date
    score: int
    latent_rank: float
    confidence: float
    bucket: Bucket
    rationale: str
    risks: Tuple[str, ...] = ()
    bucket_change: Dict[str, object] = field(default_factory=dict, compare=False)
    citations: Tuple[Dict[str, object], ...] = field(default=(), compare=False)
    sources: Tuple[Dict[str, object], ...] = field(default=(), compare=False)
    is_fallback: bool = False
    metadata: MetadataDict = field(default_factory=dict, compare=False)


def fallback_record(
    symbol: str,
    run_date: date,
    previous: PreviousRating | None = None,
    error: str | None = None,
) -> ScoreRecord:
    """Return the deterministic neutral record used when scoring fails."""

    previous = previous or PreviousRating()
    return ScoreRecord(
        symbol=symbol,
        run_date=run_date,
        score=0,
        latent_rank=0.5,
        confidence=0.0,
        bucket="hold",
        rationale=FALLBACK_RATIONALE,
        risks=FALLBACK_RISKS,
        bucket_change={
            "changed": False,
            "previous_bucket": previous.bucket,
            "current_bucket": "hold",
            "explanation": None,
        },
        is_fallback=True,
        metadata={"error": error or "unknown error"},
    )
