"""Toprank – Score record storage.

Rows are written once per ``(batch_id, symbol)``::

    instrument_scores(
        batch_id      TEXT REFERENCES run_batches,
        symbol        TEXT,
        run_date      DATE,
        score         INTEGER,
        latent_rank   NUMERIC,
        confidence    NUMERIC,
        bucket        TEXT,
        rationale     TEXT,
        risks         JSONB,
        bucket_change JSONB,
        citations     JSONB,
        sources       JSONB,
        is_fallback   BOOLEAN,
        metadata      JSONB,
        created_at    TIMESTAMPTZ,
        PRIMARY KEY (batch_id, symbol)
    )

A second write for the same key is ignored: once recorded, a score is
frozen input for every downstream stage, even though the oracle that
produced it is not deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence

from psycopg2.extras import Json

from toprank.core.database import DatabaseManager
from toprank.core.logging import get_logger
from toprank.scoring.types import PreviousRating, ScoreRecord


logger = get_logger(__name__)


class ScoreStorageLike(Protocol):
    """Score persistence operations used by the pipeline."""

    def save_scores(self, batch_id: str, records: Sequence[ScoreRecord]) -> None:  # pragma: no cover - interface
        ...

    def load_scores(self, batch_id: str) -> List[ScoreRecord]:  # pragma: no cover - interface
        ...


def previous_ratings(records: Sequence[ScoreRecord]) -> Dict[str, PreviousRating]:
    """Build the previous-run context map passed to the oracle."""

    return {r.symbol: PreviousRating(score=r.score, bucket=r.bucket) for r in records}


@dataclass
class ScoreStorage:
    """Write-once persistence for :class:`ScoreRecord` rows."""

    db_manager: DatabaseManager

    def save_scores(self, batch_id: str, records: Sequence[ScoreRecord]) -> None:
        if not records:
            return

        sql = """
            INSERT INTO instrument_scores (
                batch_id,
                symbol,
                run_date,
                score,
                latent_rank,
                confidence,
                bucket,
                rationale,
                risks,
                bucket_change,
                citations,
                sources,
                is_fallback,
                metadata,
                created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
            ON CONFLICT (batch_id, symbol) DO NOTHING
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                for record in records:
                    cursor.execute(
                        sql,
                        (
                            batch_id,
                            record.symbol,
                            record.run_date,
                            record.score,
                            record.latent_rank,
                            record.confidence,
                            record.bucket,
                            record.rationale,
                            Json(list(record.risks)),
                            Json(record.bucket_change),
                            Json(list(record.citations)),
                            Json(list(record.sources)),
                            record.is_fallback,
                            Json(record.metadata),
                        ),
                    )
                conn.commit()
            finally:
                cursor.close()

        logger.info("ScoreStorage.save_scores: batch=%s n=%d", batch_id, len(records))

    def load_scores(self, batch_id: str) -> List[ScoreRecord]:
        sql = """
            SELECT symbol, run_date, score, latent_rank, confidence, bucket,
                   rationale, risks, bucket_change, citations, sources, is_fallback
            FROM instrument_scores
            WHERE batch_id = %s
            ORDER BY symbol
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, (batch_id,))
                rows = cursor.fetchall()
            finally:
                cursor.close()

        records: List[ScoreRecord] = []
        for row in rows:
            (
                symbol,
                run_date,
                score,
                latent_rank,
                confidence,
                bucket,
                rationale,
                risks,
                bucket_change,
                citations,
                sources,
                is_fallback,
            ) = row
            records.append(
                ScoreRecord(
                    symbol=symbol,
                    run_date=run_date,
                    score=int(score),
                    latent_rank=float(latent_rank),
                    confidence=float(confidence),
                    bucket=bucket,
                    rationale=rationale or "",
                    risks=tuple(risks or ()),
                    bucket_change=dict(bucket_change or {}),
                    citations=tuple(citations or ()),
                    sources=tuple(sources or ()),
                    is_fallback=bool(is_fallback),
                )
            )
        return records
