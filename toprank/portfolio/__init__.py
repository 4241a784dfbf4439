"""Toprank – Portfolio construction and rebalance diff."""

from .types import ActionType, Holding, RebalanceAction
from .construction import build_holdings, rank_scores, ranking_key, validate_holdings, weights_of
from .rebalance import action_label, diff_holdings
from .storage import PortfolioStorage, PortfolioStorageLike

__all__ = [
    "ActionType",
    "Holding",
    "PortfolioStorage",
    "PortfolioStorageLike",
    "RebalanceAction",
    "action_label",
    "build_holdings",
    "diff_holdings",
    "rank_scores",
    "ranking_key",
    "validate_holdings",
    "weights_of",
]
