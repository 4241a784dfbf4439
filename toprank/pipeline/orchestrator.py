"""Toprank – Weekly rebalance orchestrator.

This module drives one rebalance run for one strategy. A history check
runs first: a date earlier than the last recorded performance point, or
one that would skip a week whose holdings were written without a point,
is refused before any write. Then, strictly in order:

1. universe snapshot (provider with fallbacks, content-hash dedup);
2. constituent scoring (write-once per batch and symbol);
3. portfolio construction (top N at 1/N);
4. rebalance diff against the previous holdings;
5. performance accounting (one forward-only point per run);
6. signal validation (1-week and gated 4-week diagnostics).

Each stage returns a :class:`StageResult`. Recoverable per-item failures
are recorded in the run's :class:`IssueCollector` and never stop the
run; the first fatal error (:class:`InvariantViolation`,
:class:`PersistenceError`) short-circuits the remaining stages, marks
the batch FAILED and is returned in the :class:`PipelineResult`.

There is no cross-stage transaction. Every write is keyed by a natural
key and is either write-once or a full replace, so a partially
completed run is recovered by running the same date again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Generic, List, Optional, Protocol, Sequence, Tuple, TypeVar

import psycopg2

from toprank.core.config import ToprankConfig
from toprank.core.database import DatabaseManager
from toprank.core.errors import FATAL_ERRORS, InvariantViolation, PersistenceError, ToprankError
from toprank.core.ids import generate_batch_key
from toprank.core.issues import Issue, IssueCollector
from toprank.core.logging import get_logger, run_context
from toprank.data.prices import DatabasePriceFeed, EodhdPriceFeed, PriceFeed
from toprank.notifications.notifier import RunNotifier, Severity, SoftDeadline
from toprank.performance.accountant import PerformanceAccountant
from toprank.performance.storage import PerformanceStorage, PerformanceStorageLike
from toprank.performance.types import PerformancePoint
from toprank.pipeline.state import RunBatch, RunBatchStorage, RunBatchStorageLike, RunPhase
from toprank.portfolio.construction import build_holdings, weights_of
from toprank.portfolio.rebalance import diff_holdings
from toprank.portfolio.storage import PortfolioStorage, PortfolioStorageLike
from toprank.portfolio.types import Holding, RebalanceAction
from toprank.scoring.oracle import OpenAIRatingOracle
from toprank.scoring.scorer import ConstituentScorer
from toprank.scoring.storage import ScoreStorage, ScoreStorageLike, previous_ratings
from toprank.scoring.types import ScoreRecord
from toprank.strategy.config import StrategyConfig, default_strategy_config
from toprank.strategy.storage import StrategyStorage, StrategyStorageLike
from toprank.universe.provider import NasdaqUniverseProvider, UniverseProvider, resolve_universe
from toprank.universe.snapshot import SnapshotManager, SnapshotStorageLike
from toprank.universe.storage import UniverseSnapshotStorage
from toprank.universe.types import Constituent, UniverseSnapshot
from toprank.validation.engine import DiagnosticsResult, SignalValidator
from toprank.validation.storage import ValidationStorage, ValidationStorageLike


logger = get_logger(__name__)

T = TypeVar("T")


# ============================================================================
# Stage and pipeline results
# ============================================================================


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Outcome of one stage: a value or a fatal error."""

    stage: str
    value: Optional[T] = None
    error: Optional[ToprankError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_stage(stage: str, fn: Callable[[], T]) -> StageResult[T]:
    """Execute ``fn`` and capture fatal errors as a failed :class:`StageResult`.

    Driver-level ``psycopg2.Error`` is reported as :class:`PersistenceError`.
    Anything else is a programming error and propagates.
    """

    try:
        return StageResult(stage=stage, value=fn())
    except FATAL_ERRORS as exc:
        logger.error("Stage %s failed: %s", stage, exc)
        return StageResult(stage=stage, error=exc)
    except psycopg2.Error as exc:
        logger.error("Stage %s failed with a database error: %s", stage, exc)
        wrapped = PersistenceError(f"Database error in stage {stage}: {exc}")
        wrapped.__cause__ = exc
        return StageResult(stage=stage, error=wrapped)


@dataclass
class PipelineResult:
    """Everything a caller needs to report on a run."""

    run_date: date
    strategy_slug: str
    strategy_id: Optional[str] = None
    batch_id: Optional[str] = None
    phase: Optional[RunPhase] = None
    failed_stage: Optional[str] = None
    error: Optional[ToprankError] = None
    issues: List[Issue] = field(default_factory=list)
    snapshot: Optional[UniverseSnapshot] = None
    scores: List[ScoreRecord] = field(default_factory=list)
    holdings: List[Holding] = field(default_factory=list)
    actions: List[RebalanceAction] = field(default_factory=list)
    performance: Optional[PerformancePoint] = None
    diagnostics: List[DiagnosticsResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class UniverseStorageLike(SnapshotStorageLike, Protocol):
    def latest_constituents(self) -> List[Constituent]:  # pragma: no cover - interface
        ...


# ============================================================================
# Pipeline
# ============================================================================


@dataclass
class RebalancePipeline:
    """Sequential driver for one strategy's weekly rebalance."""

    strategy: StrategyConfig
    strategy_storage: StrategyStorageLike
    batch_storage: RunBatchStorageLike
    universe_provider: UniverseProvider
    universe_storage: UniverseStorageLike
    scorer: ConstituentScorer
    score_storage: ScoreStorageLike
    portfolio_storage: PortfolioStorageLike
    performance_storage: PerformanceStorageLike
    validation_storage: ValidationStorageLike
    price_feed: PriceFeed
    notifier: RunNotifier = field(default_factory=RunNotifier)
    fallback_symbols: Sequence[str] = ()
    git_commit_sha: str = "local"
    soft_deadline_seconds: float = 0.0

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _accountant(self) -> PerformanceAccountant:
        return PerformanceAccountant(
            storage=self.performance_storage,
            price_feed=self.price_feed,
            transaction_cost_bps=self.strategy.transaction_cost_bps,
        )

    def _check_history(self, strategy_id: str, run_date: date) -> None:
        """Refuse a date the equity curve cannot accept before anything is written."""

        previous_date, _ = self.portfolio_storage.load_previous_holdings(strategy_id, run_date)
        self._accountant().ensure_forward_only(strategy_id, run_date, previous_date)

    def _open_batch(self, strategy_id: str, run_date: date) -> RunBatch:
        batch = self.batch_storage.get_or_create_batch(
            batch_id=generate_batch_key(run_date, self.strategy.slug),
            strategy_id=strategy_id,
            run_date=run_date,
            prompt_version=self.strategy.prompt_version,
            model_name=self.strategy.model_name,
            git_commit_sha=self.git_commit_sha,
        )
        if batch.phase != RunPhase.CREATED:
            logger.info("RebalancePipeline: re-running batch=%s from phase=%s", batch.batch_id, batch.phase.value)
            batch = self.batch_storage.restart(batch.batch_id)
        return batch

    def _snapshot(
        self, batch: RunBatch, issues: IssueCollector
    ) -> Tuple[UniverseSnapshot, List[Constituent]]:
        constituents = resolve_universe(
            self.universe_provider,
            self.universe_storage.latest_constituents,
            self.fallback_symbols,
            issues,
        )
        if not constituents:
            raise InvariantViolation("Universe is empty after every fallback")

        names = {c.symbol.strip().upper(): c.company_name for c in constituents}
        snapshot = SnapshotManager(self.universe_storage).ensure_snapshot(
            batch.run_date, names.keys(), names
        )
        self.batch_storage.set_snapshot(batch.batch_id, snapshot.snapshot_id)
        self.batch_storage.update_phase(batch.batch_id, RunPhase.SNAPSHOT_DONE)

        members = [Constituent(symbol=s, company_name=names.get(s, s)) for s in snapshot.symbols]
        return snapshot, members

    def _score(
        self, batch: RunBatch, constituents: Sequence[Constituent], issues: IssueCollector
    ) -> List[ScoreRecord]:
        already_scored = {r.symbol for r in self.score_storage.load_scores(batch.batch_id)}
        missing = [c for c in constituents if c.symbol not in already_scored]

        if missing:
            previous_batch = self.batch_storage.latest_batch_before(batch.strategy_id, batch.run_date)
            previous = (
                previous_ratings(self.score_storage.load_scores(previous_batch.batch_id))
                if previous_batch is not None
                else {}
            )
            fresh = self.scorer.score_constituents(batch.run_date, missing, previous, issues)
            self.score_storage.save_scores(batch.batch_id, fresh)

        universe = {c.symbol for c in constituents}
        records = [r for r in self.score_storage.load_scores(batch.batch_id) if r.symbol in universe]
        logger.info(
            "RebalancePipeline._score: batch=%s reused=%d scored=%d eligible=%d",
            batch.batch_id,
            len(already_scored),
            len(missing),
            len(records),
        )
        self.batch_storage.update_phase(batch.batch_id, RunPhase.SCORED)
        return records

    def _portfolio(
        self, batch: RunBatch, records: Sequence[ScoreRecord]
    ) -> Tuple[List[Holding], Optional[date], List[Holding]]:
        holdings = build_holdings(records, self.strategy.portfolio_size)
        previous_date, previous_holdings = self.portfolio_storage.load_previous_holdings(
            batch.strategy_id, batch.run_date
        )
        self.portfolio_storage.save_holdings(batch.strategy_id, batch.run_date, batch.batch_id, holdings)
        self.batch_storage.update_phase(batch.batch_id, RunPhase.PORTFOLIO_DONE)
        return holdings, previous_date, previous_holdings

    def _actions(
        self,
        batch: RunBatch,
        previous_holdings: Sequence[Holding],
        holdings: Sequence[Holding],
        universe: Sequence[str],
    ) -> List[RebalanceAction]:
        actions = diff_holdings(weights_of(previous_holdings), holdings, universe)
        self.portfolio_storage.save_actions(batch.strategy_id, batch.run_date, actions)
        self.batch_storage.update_phase(batch.batch_id, RunPhase.ACTIONS_DONE)
        return actions

    def _performance(
        self,
        batch: RunBatch,
        previous_date: Optional[date],
        previous_holdings: Sequence[Holding],
        holdings: Sequence[Holding],
        issues: IssueCollector,
    ) -> PerformancePoint:
        point = self._accountant().record_point(
            batch.strategy_id,
            batch.run_date,
            previous_date,
            weights_of(previous_holdings),
            weights_of(holdings),
            issues,
        )
        self.batch_storage.update_phase(batch.batch_id, RunPhase.PERFORMANCE_DONE)
        return point

    def _formation_scores(self, strategy_id: str, formation_date: date) -> List[ScoreRecord]:
        batch = self.batch_storage.find_batch(strategy_id, formation_date)
        if batch is None:
            return []
        return self.score_storage.load_scores(batch.batch_id)

    def _validate(
        self, batch: RunBatch, point: PerformancePoint, issues: IssueCollector
    ) -> List[DiagnosticsResult]:
        validator = SignalValidator(
            price_feed=self.price_feed,
            storage=self.validation_storage,
            performance_storage=self.performance_storage,
            load_formation_scores=lambda d: self._formation_scores(batch.strategy_id, d),
        )
        diagnostics = validator.validate(point, issues)
        self.batch_storage.update_phase(batch.batch_id, RunPhase.COMPLETED)
        return diagnostics

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def _fail(self, result: PipelineResult, stage: StageResult) -> PipelineResult:
        result.failed_stage = stage.stage
        result.error = stage.error
        if result.batch_id is not None:
            error_payload = {
                "stage": stage.stage,
                "type": type(stage.error).__name__,
                "message": str(stage.error),
            }
            marked = run_stage(
                "mark_failed",
                lambda: self.batch_storage.update_phase(result.batch_id, RunPhase.FAILED, error_payload),
            )
            if marked.ok and marked.value is not None:
                result.phase = marked.value.phase
            else:
                logger.error("RebalancePipeline: could not mark batch %s FAILED: %s", result.batch_id, marked.error)
        return result

    def _deadline_warning(self, run_date: date) -> None:
        self.notifier.notify(
            f"Toprank run {run_date} exceeded soft deadline",
            f"Strategy {self.strategy.slug} is still running after {self.soft_deadline_seconds:.0f}s; "
            "the run continues.",
            Severity.WARNING,
        )

    def run(self, run_date: date) -> PipelineResult:
        """Run every stage for ``run_date`` and report the outcome."""

        issues = IssueCollector()
        result = PipelineResult(run_date=run_date, strategy_slug=self.strategy.slug)
        logger.info("RebalancePipeline.run: strategy=%s date=%s", self.strategy.slug, run_date)

        with run_context(f"{self.strategy.slug}@{run_date.isoformat()}"):
            with SoftDeadline(self.soft_deadline_seconds, lambda: self._deadline_warning(run_date)):
                self._run_stages(run_date, issues, result)

            result.issues = issues.issues
            self._report(result, issues)
        return result

    def _run_stages(self, run_date: date, issues: IssueCollector, result: PipelineResult) -> None:
        strategy = run_stage("strategy", lambda: self.strategy_storage.ensure_strategy(self.strategy))
        if not strategy.ok:
            self._fail(result, strategy)
            return
        result.strategy_id = strategy.value

        checked = run_stage("history", lambda: self._check_history(strategy.value, run_date))
        if not checked.ok:
            self._fail(result, checked)
            return

        opened = run_stage("batch", lambda: self._open_batch(strategy.value, run_date))
        if not opened.ok:
            self._fail(result, opened)
            return
        batch: RunBatch = opened.value  # type: ignore[assignment]
        result.batch_id = batch.batch_id
        result.phase = batch.phase

        snap = run_stage("snapshot", lambda: self._snapshot(batch, issues))
        if not snap.ok:
            self._fail(result, snap)
            return
        result.snapshot, constituents = snap.value  # type: ignore[misc]
        result.phase = RunPhase.SNAPSHOT_DONE

        scored = run_stage("score", lambda: self._score(batch, constituents, issues))
        if not scored.ok:
            self._fail(result, scored)
            return
        result.scores = scored.value or []
        result.phase = RunPhase.SCORED

        built = run_stage("portfolio", lambda: self._portfolio(batch, result.scores))
        if not built.ok:
            self._fail(result, built)
            return
        result.holdings, previous_date, previous_holdings = built.value  # type: ignore[misc]
        result.phase = RunPhase.PORTFOLIO_DONE

        universe = [c.symbol for c in constituents]
        diffed = run_stage(
            "actions", lambda: self._actions(batch, previous_holdings, result.holdings, universe)
        )
        if not diffed.ok:
            self._fail(result, diffed)
            return
        result.actions = diffed.value or []
        result.phase = RunPhase.ACTIONS_DONE

        accounted = run_stage(
            "performance",
            lambda: self._performance(batch, previous_date, previous_holdings, result.holdings, issues),
        )
        if not accounted.ok:
            self._fail(result, accounted)
            return
        result.performance = accounted.value
        result.phase = RunPhase.PERFORMANCE_DONE

        validated = run_stage("validation", lambda: self._validate(batch, result.performance, issues))
        if not validated.ok:
            self._fail(result, validated)
            return
        result.diagnostics = validated.value or []
        result.phase = RunPhase.COMPLETED

    def _report(self, result: PipelineResult, issues: IssueCollector) -> None:
        if result.error is not None:
            self.notifier.notify(
                f"Toprank run {result.run_date} FAILED in stage {result.failed_stage}",
                f"{type(result.error).__name__}: {result.error}",
                Severity.FAILURE,
            )
        if issues:
            self.notifier.notify(
                f"Toprank run {result.run_date}: {len(issues)} issue(s)",
                issues.render_text(),
                Severity.WARNING,
            )
        logger.info(
            "RebalancePipeline.run: strategy=%s date=%s phase=%s issues=%d ok=%s",
            result.strategy_slug,
            result.run_date,
            result.phase.value if result.phase else None,
            len(result.issues),
            result.ok,
        )


# ============================================================================
# Wiring
# ============================================================================


def build_price_feed(config: ToprankConfig, db_manager: DatabaseManager, source: str = "database") -> PriceFeed:
    """Return the price feed for ``source`` (``database`` or ``eodhd``)."""

    if source == "eodhd":
        return EodhdPriceFeed(api_token=config.eodhd_api_key, timeout_seconds=config.price_timeout_seconds)
    if source == "database":
        return DatabasePriceFeed(db_manager)
    raise ValueError(f"Unknown price source {source!r}")


def build_rebalance_pipeline(
    config: ToprankConfig,
    db_manager: DatabaseManager,
    price_source: str = "database",
    strategy: Optional[StrategyConfig] = None,
) -> RebalancePipeline:
    """Wire a :class:`RebalancePipeline` against the configured databases and services."""

    strategy = strategy or default_strategy_config(config)
    oracle_config = config.oracle

    return RebalancePipeline(
        strategy=strategy,
        strategy_storage=StrategyStorage(db_manager),
        batch_storage=RunBatchStorage(db_manager),
        universe_provider=NasdaqUniverseProvider(timeout_seconds=config.price_timeout_seconds),
        universe_storage=UniverseSnapshotStorage(db_manager, index_name=strategy.index_name),
        scorer=ConstituentScorer(OpenAIRatingOracle(oracle_config), concurrency=oracle_config.concurrency),
        score_storage=ScoreStorage(db_manager),
        portfolio_storage=PortfolioStorage(db_manager),
        performance_storage=PerformanceStorage(db_manager),
        validation_storage=ValidationStorage(db_manager),
        price_feed=build_price_feed(config, db_manager, price_source),
        notifier=RunNotifier(config.notification_urls),
        fallback_symbols=config.fallback_symbols,
        git_commit_sha=config.git_commit_sha,
        soft_deadline_seconds=config.run_soft_deadline_seconds,
    )
