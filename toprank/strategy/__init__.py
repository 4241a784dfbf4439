"""Toprank – strategy identity package.

- :mod:`toprank.strategy.config` – the immutable :class:`StrategyConfig`
  value type and the version axes that form its slug.
- :mod:`toprank.strategy.storage` – persistence with a field-by-field
  mismatch guard.
"""

from .config import StrategyConfig, default_strategy_config, diff_strategy_fields
from .storage import StrategyStorage, StrategyStorageLike

__all__ = [
    "StrategyConfig",
    "StrategyStorage",
    "StrategyStorageLike",
    "default_strategy_config",
    "diff_strategy_fields",
]
