"""Toprank – Run batch state machine.

One ``run_batches`` row exists per (strategy, run date). It ties the
run's rows together (scores reference ``batch_id``) and tracks how far
the run has progressed::

    CREATED -> SNAPSHOT_DONE -> SCORED -> PORTFOLIO_DONE
    -> ACTIONS_DONE -> PERFORMANCE_DONE -> COMPLETED

Any phase may transition to FAILED. A re-run of the same date calls
:meth:`RunBatchStorage.restart`, which moves the batch back to CREATED;
every stage is idempotent, so re-execution is the recovery path.

Schema (runtime DB)::

    run_batches(
        batch_id           TEXT PRIMARY KEY,
        strategy_id        TEXT REFERENCES trading_strategies,
        run_date           DATE,
        snapshot_id        TEXT REFERENCES universe_snapshots,
        prompt_version     TEXT,
        model_name         TEXT,
        git_commit_sha     TEXT,
        phase              TEXT,
        error              JSONB,
        created_at         TIMESTAMPTZ,
        updated_at         TIMESTAMPTZ,
        phase_started_at   TIMESTAMPTZ,
        phase_completed_at TIMESTAMPTZ,
        UNIQUE (strategy_id, run_date)
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Protocol

from psycopg2.extras import Json

from toprank.core.database import DatabaseManager
from toprank.core.errors import InvariantViolation
from toprank.core.logging import get_logger


logger = get_logger(__name__)


class RunPhase(str, Enum):
    """Discrete phases of a rebalance run."""

    CREATED = "CREATED"
    SNAPSHOT_DONE = "SNAPSHOT_DONE"
    SCORED = "SCORED"
    PORTFOLIO_DONE = "PORTFOLIO_DONE"
    ACTIONS_DONE = "ACTIONS_DONE"
    PERFORMANCE_DONE = "PERFORMANCE_DONE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


_SUCCESSORS: dict[RunPhase, RunPhase] = {
    RunPhase.CREATED: RunPhase.SNAPSHOT_DONE,
    RunPhase.SNAPSHOT_DONE: RunPhase.SCORED,
    RunPhase.SCORED: RunPhase.PORTFOLIO_DONE,
    RunPhase.PORTFOLIO_DONE: RunPhase.ACTIONS_DONE,
    RunPhase.ACTIONS_DONE: RunPhase.PERFORMANCE_DONE,
    RunPhase.PERFORMANCE_DONE: RunPhase.COMPLETED,
}


@dataclass(frozen=True)
class RunBatch:
    """Snapshot of a ``run_batches`` row."""

    batch_id: str
    strategy_id: str
    run_date: date
    phase: RunPhase
    snapshot_id: Optional[str] = None
    prompt_version: Optional[str] = None
    model_name: Optional[str] = None
    git_commit_sha: Optional[str] = None
    error: Optional[dict] = None


class RunBatchStateError(InvariantViolation):
    """Raised when an invalid phase transition is attempted."""


def validate_transition(current: RunPhase, new: RunPhase) -> None:
    """Raise :class:`RunBatchStateError` unless ``current -> new`` is allowed."""

    if current == new:
        return
    if current in (RunPhase.COMPLETED, RunPhase.FAILED):
        raise RunBatchStateError(f"Cannot transition from terminal phase {current.value}")
    if new == RunPhase.FAILED:
        return
    if _SUCCESSORS.get(current) != new:
        raise RunBatchStateError(f"Invalid transition {current.value} -> {new.value}")


class RunBatchStorageLike(Protocol):
    def get_or_create_batch(
        self,
        batch_id: str,
        strategy_id: str,
        run_date: date,
        prompt_version: str,
        model_name: str,
        git_commit_sha: str,
    ) -> RunBatch:  # pragma: no cover - interface
        ...

    def restart(self, batch_id: str) -> RunBatch:  # pragma: no cover - interface
        ...

    def set_snapshot(self, batch_id: str, snapshot_id: str) -> None:  # pragma: no cover - interface
        ...

    def update_phase(
        self, batch_id: str, new_phase: RunPhase, error: Optional[dict] = None
    ) -> RunBatch:  # pragma: no cover - interface
        ...

    def find_batch(self, strategy_id: str, run_date: date) -> Optional[RunBatch]:  # pragma: no cover - interface
        ...

    def latest_batch_before(self, strategy_id: str, run_date: date) -> Optional[RunBatch]:  # pragma: no cover - interface
        ...


_SELECT_COLUMNS = """
    SELECT batch_id,
           strategy_id,
           run_date,
           phase,
           snapshot_id,
           prompt_version,
           model_name,
           git_commit_sha,
           error
    FROM run_batches
"""


def _row_to_batch(row: tuple) -> RunBatch:
    (
        batch_id,
        strategy_id,
        run_date,
        phase,
        snapshot_id,
        prompt_version,
        model_name,
        git_commit_sha,
        error,
    ) = row

    return RunBatch(
        batch_id=batch_id,
        strategy_id=strategy_id,
        run_date=run_date,
        phase=RunPhase(phase),
        snapshot_id=snapshot_id,
        prompt_version=prompt_version,
        model_name=model_name,
        git_commit_sha=git_commit_sha,
        error=error or None,
    )


@dataclass
class RunBatchStorage:
    """Persistence and phase tracking for ``run_batches``."""

    db_manager: DatabaseManager

    def _select_one(self, where: str, params: tuple, order: str = "") -> Optional[RunBatch]:
        sql = f"{_SELECT_COLUMNS} WHERE {where} {order} LIMIT 1"
        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, params)
                row = cursor.fetchone()
            finally:
                cursor.close()
        return _row_to_batch(row) if row is not None else None

    def load_batch(self, batch_id: str) -> RunBatch:
        batch = self._select_one("batch_id = %s", (batch_id,))
        if batch is None:
            raise RunBatchStateError(f"Run batch {batch_id!r} not found")
        return batch

    def find_batch(self, strategy_id: str, run_date: date) -> Optional[RunBatch]:
        return self._select_one("strategy_id = %s AND run_date = %s", (strategy_id, run_date))

    def latest_batch_before(self, strategy_id: str, run_date: date) -> Optional[RunBatch]:
        return self._select_one(
            "strategy_id = %s AND run_date < %s",
            (strategy_id, run_date),
            order="ORDER BY run_date DESC",
        )

    def get_or_create_batch(
        self,
        batch_id: str,
        strategy_id: str,
        run_date: date,
        prompt_version: str,
        model_name: str,
        git_commit_sha: str,
    ) -> RunBatch:
        """Return the batch for ``batch_id``, creating it in CREATED if missing."""

        insert_sql = """
            INSERT INTO run_batches (
                batch_id,
                strategy_id,
                run_date,
                prompt_version,
                model_name,
                git_commit_sha,
                phase,
                error,
                created_at,
                updated_at,
                phase_started_at,
                phase_completed_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW(), NOW(), NULL)
            ON CONFLICT (batch_id) DO NOTHING
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    insert_sql,
                    (
                        batch_id,
                        strategy_id,
                        run_date,
                        prompt_version,
                        model_name,
                        git_commit_sha,
                        RunPhase.CREATED.value,
                        Json({}),
                    ),
                )
                conn.commit()
            finally:
                cursor.close()

        return self.load_batch(batch_id)

    def _write_phase(self, batch_id: str, new_phase: RunPhase, error: Optional[dict]) -> RunBatch:
        now = datetime.now(timezone.utc)
        phase_completed_at = now if new_phase in (RunPhase.COMPLETED, RunPhase.FAILED) else None

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    UPDATE run_batches
                    SET phase = %s,
                        error = %s,
                        updated_at = %s,
                        phase_started_at = %s,
                        phase_completed_at = %s
                    WHERE batch_id = %s
                    """,
                    (new_phase.value, Json(error or {}), now, now, phase_completed_at, batch_id),
                )
                conn.commit()
            finally:
                cursor.close()

        logger.info("RunBatchStorage: batch=%s phase=%s", batch_id, new_phase.value)
        return self.load_batch(batch_id)

    def update_phase(self, batch_id: str, new_phase: RunPhase, error: Optional[dict] = None) -> RunBatch:
        """Validate and apply a forward transition."""

        current = self.load_batch(batch_id)
        validate_transition(current.phase, new_phase)
        return self._write_phase(batch_id, new_phase, error)

    def restart(self, batch_id: str) -> RunBatch:
        """Move a batch back to CREATED for a re-run of the same date."""

        return self._write_phase(batch_id, RunPhase.CREATED, None)

    def set_snapshot(self, batch_id: str, snapshot_id: str) -> None:
        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "UPDATE run_batches SET snapshot_id = %s, updated_at = NOW() WHERE batch_id = %s",
                    (snapshot_id, batch_id),
                )
                conn.commit()
            finally:
                cursor.close()
