"""Toprank – Constituent scorer.

The scorer fans out over the universe with a fixed-size worker pool.
Workers pull instruments from a shared queue and write results into
their own output list; the lists are merged once every worker has
finished, so workers share no mutable state except the queue and the
thread-safe issue collector.

For each instrument the worker calls the rating oracle with the
previous run's score/bucket as context, then clamps the numeric fields.
Any recoverable failure (transport, refusal, schema violation) is
replaced by the deterministic neutral fallback record and recorded as an
issue. One instrument failing never aborts the run.
"""

from __future__ import annotations

import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Mapping, Sequence

from toprank.core.errors import RECOVERABLE_ERRORS
from toprank.core.issues import IssueCollector
from toprank.core.logging import get_logger
from toprank.scoring.oracle import OracleResponse, RatingOracle
from toprank.scoring.prompt import RatingRequest
from toprank.scoring.types import (
    PreviousRating,
    ScoreRecord,
    bucket_from_score,
    clamp_score,
    clamp_unit,
    fallback_record,
)
from toprank.universe.types import Constituent


logger = get_logger(__name__)


def record_from_response(request: RatingRequest, response: OracleResponse) -> ScoreRecord:
    """Normalise a validated oracle response into a :class:`ScoreRecord`."""

    rating = response.rating
    score = clamp_score(rating.score)
    bucket = bucket_from_score(score)

    return ScoreRecord(
        symbol=request.symbol,
        run_date=request.run_date,
        score=score,
        latent_rank=clamp_unit(rating.latent_rank, default=0.5),
        confidence=clamp_unit(rating.confidence),
        bucket=bucket,
        rationale=rating.rationale,
        risks=tuple(rating.risks),
        bucket_change={
            "changed": rating.bucket_change.changed,
            "previous_bucket": rating.bucket_change.previous_bucket,
            "current_bucket": bucket,
            "explanation": rating.bucket_change.explanation,
        },
        citations=response.citations,
        sources=response.sources,
        is_fallback=False,
        metadata={"raw_response": response.raw},
    )


@dataclass
class ConstituentScorer:
    """Score a universe with bounded concurrency and local fallback."""

    oracle: RatingOracle
    concurrency: int = 20

    def score_one(self, request: RatingRequest, issues: IssueCollector) -> ScoreRecord:
        """Score a single instrument, substituting the fallback on failure."""

        try:
            response = self.oracle.rate(request)
        except RECOVERABLE_ERRORS as exc:
            issues.record("Oracle rating failed", exc, context=f"symbol={request.symbol}")
            return fallback_record(request.symbol, request.run_date, request.previous, error=str(exc))
        return record_from_response(request, response)

    def _worker(
        self,
        work: "queue.Queue[RatingRequest]",
        slot: List[ScoreRecord],
        issues: IssueCollector,
    ) -> None:
        while True:
            try:
                request = work.get_nowait()
            except queue.Empty:
                return
            try:
                slot.append(self.score_one(request, issues))
            finally:
                work.task_done()

    def score_constituents(
        self,
        run_date: date,
        constituents: Sequence[Constituent],
        previous: Mapping[str, PreviousRating],
        issues: IssueCollector,
    ) -> List[ScoreRecord]:
        """Score ``constituents`` and return records sorted by symbol."""

        if not constituents:
            return []

        work: "queue.Queue[RatingRequest]" = queue.Queue()
        for constituent in constituents:
            work.put(
                RatingRequest(
                    symbol=constituent.symbol,
                    company_name=constituent.company_name,
                    run_date=run_date,
                    previous=previous.get(constituent.symbol, PreviousRating()),
                )
            )

        n_workers = max(1, min(self.concurrency, len(constituents)))
        slots: List[List[ScoreRecord]] = [[] for _ in range(n_workers)]

        with ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix="scorer") as pool:
            futures = [pool.submit(self._worker, work, slot, issues) for slot in slots]
            for future in futures:
                future.result()

        merged: Dict[str, ScoreRecord] = {}
        for slot in slots:
            for record in slot:
                merged[record.symbol] = record

        records = [merged[symbol] for symbol in sorted(merged)]
        n_fallback = sum(1 for r in records if r.is_fallback)
        logger.info(
            "ConstituentScorer.score_constituents: date=%s scored=%d fallback=%d workers=%d",
            run_date,
            len(records),
            n_fallback,
            n_workers,
        )
        return records
