"""Toprank – Rebalance diff engine."""

from __future__ import annotations

from typing import Collection, List, Mapping, Sequence

from toprank.core.logging import get_logger
from toprank.portfolio.types import ActionType, Holding, RebalanceAction


logger = get_logger(__name__)

_ACTION_ORDER = {ActionType.ENTER: 0, ActionType.EXIT_INDEX: 1, ActionType.EXIT_RANK: 2}


def action_label(action_type: ActionType, portfolio_size: int) -> str:
    """Return the display label for an action."""

    if action_type is ActionType.ENTER:
        return f"Entered top {portfolio_size}"
    if action_type is ActionType.EXIT_RANK:
        return f"Dropped out of top {portfolio_size}"
    return "Removed from index"


def diff_holdings(
    previous_weights: Mapping[str, float],
    new_holdings: Sequence[Holding],
    universe_symbols: Collection[str],
) -> List[RebalanceAction]:
    """Classify membership changes between two rebalances.

    Args:
        previous_weights: ``symbol -> weight`` of the previous run's
            holdings (empty on the first run).
        new_holdings: Holdings selected for this run.
        universe_symbols: Current eligible universe. A previous holding
            absent from the new holdings is ``exit_rank`` if it is still
            in this set and ``exit_index`` otherwise.

    Returns:
        Actions ordered by action type then symbol.
    """

    new_weights = {h.symbol: h.target_weight for h in new_holdings}
    universe = set(universe_symbols)
    portfolio_size = len(new_holdings)

    actions: List[RebalanceAction] = []
    for symbol in sorted(new_weights):
        if symbol not in previous_weights:
            actions.append(
                RebalanceAction(
                    symbol=symbol,
                    action_type=ActionType.ENTER,
                    previous_weight=None,
                    new_weight=new_weights[symbol],
                    label=action_label(ActionType.ENTER, portfolio_size),
                )
            )

    for symbol in sorted(previous_weights):
        if symbol in new_weights:
            continue
        action_type = ActionType.EXIT_RANK if symbol in universe else ActionType.EXIT_INDEX
        actions.append(
            RebalanceAction(
                symbol=symbol,
                action_type=action_type,
                previous_weight=float(previous_weights[symbol]),
                new_weight=None,
                label=action_label(action_type, portfolio_size),
            )
        )

    actions.sort(key=lambda a: (_ACTION_ORDER[a.action_type], a.symbol))
    logger.info(
        "diff_holdings: enter=%d exit_rank=%d exit_index=%d",
        sum(1 for a in actions if a.action_type is ActionType.ENTER),
        sum(1 for a in actions if a.action_type is ActionType.EXIT_RANK),
        sum(1 for a in actions if a.action_type is ActionType.EXIT_INDEX),
    )
    return actions
