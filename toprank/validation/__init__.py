"""Toprank – Signal validation diagnostics."""

from .diagnostics import (
    QuintileReturn,
    RegressionResult,
    SignalSample,
    cross_sectional_regression,
    quintile_partition_sizes,
    quintile_returns,
    quintile_spread,
)
from .engine import DiagnosticsResult, SignalValidator, is_long_horizon_due
from .storage import ValidationStorage, ValidationStorageLike

__all__ = [
    "DiagnosticsResult",
    "QuintileReturn",
    "RegressionResult",
    "SignalSample",
    "SignalValidator",
    "ValidationStorage",
    "ValidationStorageLike",
    "cross_sectional_regression",
    "is_long_horizon_due",
    "quintile_partition_sizes",
    "quintile_returns",
    "quintile_spread",
]
