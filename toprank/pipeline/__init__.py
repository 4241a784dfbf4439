"""Toprank – Rebalance pipeline orchestration."""

from .state import RunBatch, RunBatchStateError, RunBatchStorage, RunBatchStorageLike, RunPhase, validate_transition
from .orchestrator import (
    PipelineResult,
    RebalancePipeline,
    StageResult,
    build_price_feed,
    build_rebalance_pipeline,
    run_stage,
)

__all__ = [
    "PipelineResult",
    "RebalancePipeline",
    "RunBatch",
    "RunBatchStateError",
    "RunBatchStorage",
    "RunBatchStorageLike",
    "RunPhase",
    "StageResult",
    "build_price_feed",
    "build_rebalance_pipeline",
    "run_stage",
    "validate_transition",
]
