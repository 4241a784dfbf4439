"""Toprank: Tests for the run batch state machine."""

from __future__ import annotations

from datetime import date

import pytest

from toprank.core.config import get_config
from toprank.core.database import DatabaseManager
from toprank.core.errors import InvariantViolation
from toprank.core.ids import generate_batch_key, generate_uuid
from toprank.pipeline.state import RunBatchStateError, RunBatchStorage, RunPhase, validate_transition
from toprank.strategy.config import StrategyConfig
from toprank.strategy.storage import StrategyStorage


_LINEAR = [
    RunPhase.CREATED,
    RunPhase.SNAPSHOT_DONE,
    RunPhase.SCORED,
    RunPhase.PORTFOLIO_DONE,
    RunPhase.ACTIONS_DONE,
    RunPhase.PERFORMANCE_DONE,
    RunPhase.COMPLETED,
]


class TestValidateTransition:
    def test_linear_forward_transitions_are_allowed(self) -> None:
        for current, new in zip(_LINEAR, _LINEAR[1:]):
            validate_transition(current, new)

    def test_same_phase_is_a_no_op(self) -> None:
        validate_transition(RunPhase.SCORED, RunPhase.SCORED)

    def test_skipping_a_phase_raises(self) -> None:
        with pytest.raises(RunBatchStateError):
            validate_transition(RunPhase.CREATED, RunPhase.SCORED)

    def test_backwards_transition_raises(self) -> None:
        with pytest.raises(RunBatchStateError):
            validate_transition(RunPhase.PORTFOLIO_DONE, RunPhase.SCORED)

    def test_any_live_phase_may_fail(self) -> None:
        for phase in _LINEAR[:-1]:
            validate_transition(phase, RunPhase.FAILED)

    def test_terminal_phases_are_final(self) -> None:
        with pytest.raises(RunBatchStateError):
            validate_transition(RunPhase.COMPLETED, RunPhase.FAILED)
        with pytest.raises(RunBatchStateError):
            validate_transition(RunPhase.FAILED, RunPhase.SNAPSHOT_DONE)

    def test_state_errors_are_fatal_invariant_violations(self) -> None:
        assert issubclass(RunBatchStateError, InvariantViolation)


@pytest.mark.integration
class TestRunBatchStorage:
    def _db(self) -> DatabaseManager:
        config = get_config()
        return DatabaseManager(config)

    def _strategy_id(self, db: DatabaseManager) -> str:
        slug = f"test-state-{generate_uuid()}"
        return StrategyStorage(db).ensure_strategy(StrategyConfig(slug=slug, name="test", version="test"))

    def test_create_and_transition_through_phases(self) -> None:
        db = self._db()
        storage = RunBatchStorage(db)
        strategy_id = self._strategy_id(db)
        run_date = date(2025, 6, 2)
        batch_id = generate_batch_key(run_date, strategy_id)

        batch = storage.get_or_create_batch(batch_id, strategy_id, run_date, "p1", "m1", "sha")
        assert batch.phase == RunPhase.CREATED

        for phase in _LINEAR[1:]:
            batch = storage.update_phase(batch_id, phase)
            assert batch.phase == phase

        with pytest.raises(RunBatchStateError):
            storage.update_phase(batch_id, RunPhase.SCORED)

        again = storage.get_or_create_batch(batch_id, strategy_id, run_date, "p1", "m1", "sha")
        assert again.phase == RunPhase.COMPLETED

        restarted = storage.restart(batch_id)
        assert restarted.phase == RunPhase.CREATED

    def test_failure_records_error_payload(self) -> None:
        db = self._db()
        storage = RunBatchStorage(db)
        strategy_id = self._strategy_id(db)
        run_date = date(2025, 6, 9)
        batch_id = generate_batch_key(run_date, strategy_id)

        storage.get_or_create_batch(batch_id, strategy_id, run_date, "p1", "m1", "sha")
        failed = storage.update_phase(batch_id, RunPhase.FAILED, error={"stage": "portfolio"})

        assert failed.phase == RunPhase.FAILED
        assert failed.error == {"stage": "portfolio"}
