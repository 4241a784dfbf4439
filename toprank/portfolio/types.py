"""Toprank – Portfolio core types.

In-memory representations of target holdings and the rebalance diff
between two consecutive runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ActionType(str, Enum):
    """Classification of a membership change between two rebalances.

    ``EXIT_RANK`` and ``EXIT_INDEX`` are kept distinct: a name that left
    the index was not dropped by a ranking decision.
    """

    ENTER = "enter"
    EXIT_RANK = "exit_rank"
    EXIT_INDEX = "exit_index"


@dataclass(frozen=True)
class Holding:
    """Target holding for a run date.

    Attributes:
        symbol: Instrument symbol.
        rank_position: 1-based position in the ranking.
        target_weight: Portfolio weight, exactly ``1 / N``.
        score: Integer score the instrument was ranked with.
        latent_rank: Latent rank the instrument was ranked with.
    """

    symbol: str
    rank_position: int
    target_weight: float
    score: Optional[int] = None
    latent_rank: Optional[float] = None


@dataclass(frozen=True)
class RebalanceAction:
    """One row of the rebalance diff for a run date."""

    symbol: str
    action_type: ActionType
    previous_weight: Optional[float]
    new_weight: Optional[float]
    label: str = ""
