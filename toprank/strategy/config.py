"""Toprank – Strategy configuration.

A strategy version is identified by its slug. The slug is derived from
two version axes:

- ``APP_VERSION`` (semver): prompt text, portfolio rules, universe,
  ranking methodology.
- ``MODEL_VERSION`` (m-series): model provider, model name, sampling
  parameters.

Changing either produces a new slug and therefore a new persisted
strategy row. Rows are never edited; changing a parameter without
bumping a version is rejected at run time by
:meth:`toprank.strategy.storage.StrategyStorage.ensure_strategy`.
"""

from __future__ import annotations

from typing import Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from toprank.core.config import ToprankConfig, get_config


APP_VERSION = "v1.0.0"
MODEL_VERSION = "m2.0"

PROMPT_NAME = "nasdaq100_weekly_rating"


class StrategyConfig(BaseModel):
    """Immutable identity and parameters of a strategy version.

    Attributes:
        slug: Versioned identifier, unique per persisted strategy row.
        name: Human-readable strategy name.
        version: Combined ``<app>-<model>`` version string.
        index_name: Universe the strategy draws from.
        portfolio_size: Number of holdings N.
        weighting_method: Only ``equal_weight`` is supported.
        rebalance_frequency: Only ``weekly`` is supported.
        rebalance_day_of_week: 0 = Sunday .. 6 = Saturday.
        transaction_cost_bps: Cost charged on turnover, in basis points.
        prompt_name: Name of the rating prompt template.
        prompt_version: Version tag of the rating prompt.
        model_provider: Rating oracle provider.
        model_name: Rating oracle model name.
        description: Free-text description.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    slug: str
    name: str
    version: str
    index_name: str = "nasdaq100"
    portfolio_size: int = 20
    weighting_method: Literal["equal_weight"] = "equal_weight"
    rebalance_frequency: Literal["weekly"] = "weekly"
    rebalance_day_of_week: int = 1
    transaction_cost_bps: float = 15.0
    prompt_name: str = PROMPT_NAME
    prompt_version: str = ""
    model_provider: str = "openai"
    model_name: str = "gpt-5.2"
    description: Optional[str] = None

    def persisted_fields(self) -> Dict[str, object]:
        """Return the fields that must match the persisted row exactly."""

        return self.model_dump(exclude={"slug"})


# Fields compared against the persisted strategy row.
COMPARED_FIELDS: List[str] = [
    name for name in StrategyConfig.model_fields if name != "slug"
]


def strategy_slug(app_version: str, model_version: str) -> str:
    """Return the slug for a pair of version axes."""

    app = app_version.replace(".", "-")
    model = model_version.replace(".", "-")
    return f"ai-top20-nasdaq100-{app}-{model}"


def default_strategy_config(config: ToprankConfig | None = None) -> StrategyConfig:
    """Build the strategy version shipped with this code base."""

    config = config or get_config()
    version = f"{APP_VERSION}-{MODEL_VERSION}"

    return StrategyConfig(
        slug=strategy_slug(APP_VERSION, MODEL_VERSION),
        name="AI Top-20 Nasdaq-100",
        version=version,
        index_name="nasdaq100",
        portfolio_size=20,
        weighting_method="equal_weight",
        rebalance_frequency="weekly",
        rebalance_day_of_week=config.rebalance_day_of_week,
        transaction_cost_bps=15.0,
        prompt_name=PROMPT_NAME,
        prompt_version=f"nasdaq100-websearch-{version}-top20-weekly",
        model_provider="openai",
        model_name=config.openai_model,
        description=(
            "Forward-only, rules-based weekly Top-20 Nasdaq-100 strategy sorted by "
            "latent_rank and rebalanced equal-weight with turnover costs."
        ),
    )


def diff_strategy_fields(config: StrategyConfig, persisted: Mapping[str, object]) -> List[str]:
    """Return the names of fields whose persisted value differs.

    Numeric values are compared as floats so that a ``NUMERIC`` column
    returned as :class:`decimal.Decimal` matches the in-code float.
    """

    expected = config.persisted_fields()
    drift: List[str] = []
    for name in COMPARED_FIELDS:
        want = expected[name]
        have = persisted.get(name)
        if isinstance(want, (int, float)) and not isinstance(want, bool) and have is not None:
            try:
                if float(have) != float(want):
                    drift.append(name)
            except (TypeError, ValueError):
                drift.append(name)
        elif have != want:
            drift.append(name)
    return drift
