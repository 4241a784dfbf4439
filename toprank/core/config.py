"""
Toprank: Settings

Everything the weekly run needs from its environment: the two PostgreSQL
connections (prices and runtime state), rating-oracle credentials and
sampling parameters, the price feed, universe fallbacks, run limits and
notification targets. Values come from environment variables, with an
optional ``.env`` loaded first for local runs.

``get_config()`` caches one :class:`ToprankConfig` per process; tests
build their own through ``load_config(env_file)`` or by constructing
:class:`ToprankConfig` directly.
"""

# ============================================================================
# Imports
# ============================================================================

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# ============================================================================
# Data Models
# ============================================================================


class DatabaseConfig(BaseModel):
    """Connection parameters for one PostgreSQL database.

    ``pool_size`` caps the connections held by its pool.
    """

    host: str
    port: int
    name: str
    user: str
    password: str
    pool_size: int = 5


class OracleConfig(BaseModel):
    """Settings for the external rating oracle.

    Attributes:
        api_key: API key for the model provider. Empty means "not set";
            the oracle client refuses to initialise without one.
        model: Model name passed on every request.
        concurrency: Number of scorer workers pulling from the queue.
        timeout_seconds: Per-call timeout for a single rating request.
        temperature: Sampling temperature.
        max_output_tokens: Output token budget for a single rating.
    """

    api_key: str = ""
    model: str = "gpt-5.2"
    concurrency: int = 20
    timeout_seconds: float = 120.0
    temperature: float = 0.2
    max_output_tokens: int = 450


class ToprankConfig(BaseSettings):
    """Process-wide settings, one field per environment variable.

    Variable groups:

    - HISTORICAL_DB_* for the price database read by the price feed
    - RUNTIME_DB_* for strategy, scoring and performance state
    - LOG_LEVEL / LOG_FILE for logging
    - OPENAI_* / ORACLE_* for the rating oracle
    - STRATEGY_* / UNIVERSE_* / RUN_* for the weekly run itself
    - NOTIFY_URLS for out-of-band alerts
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    # Historical DB
    historical_db_host: str = Field(default="localhost", alias="HISTORICAL_DB_HOST")
    historical_db_port: int = Field(default=5432, alias="HISTORICAL_DB_PORT")
    historical_db_name: str = Field(default="toprank_historical", alias="HISTORICAL_DB_NAME")
    historical_db_user: str = Field(default="toprank", alias="HISTORICAL_DB_USER")
    historical_db_password: str = Field(default="", alias="HISTORICAL_DB_PASSWORD")

    # Runtime DB
    runtime_db_host: str = Field(default="localhost", alias="RUNTIME_DB_HOST")
    runtime_db_port: int = Field(default=5432, alias="RUNTIME_DB_PORT")
    runtime_db_name: str = Field(default="toprank_runtime", alias="RUNTIME_DB_NAME")
    runtime_db_user: str = Field(default="toprank", alias="RUNTIME_DB_USER")
    runtime_db_password: str = Field(default="", alias="RUNTIME_DB_PASSWORD")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str = Field(default="toprank.log", alias="LOG_FILE")

    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    git_commit_sha: str = Field(default="local", alias="GIT_COMMIT_SHA")

    # Rating oracle
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-5.2", alias="OPENAI_MODEL")
    oracle_concurrency: int = Field(default=20, alias="ORACLE_CONCURRENCY")
    oracle_timeout_seconds: float = Field(default=120.0, alias="ORACLE_TIMEOUT_SECONDS")

    # Prices
    eodhd_api_key: str = Field(default="", alias="EODHD_API_KEY")
    price_timeout_seconds: int = Field(default=30, alias="PRICE_TIMEOUT_SECONDS")

    # Run-level behaviour
    run_soft_deadline_seconds: float = Field(default=240.0, alias="RUN_SOFT_DEADLINE_SECONDS")
    rebalance_day_utc: int = Field(default=1, alias="STRATEGY_REBALANCE_DAY_UTC")
    universe_fallback_symbols: str = Field(default="", alias="UNIVERSE_FALLBACK_SYMBOLS")

    # Out-of-band notifications (Apprise URLs, comma separated)
    notify_urls: str = Field(default="", alias="NOTIFY_URLS")

    @property
    def historical_db(self) -> DatabaseConfig:
        """Return database configuration for the historical (prices) DB."""

        return DatabaseConfig(
            host=self.historical_db_host,
            port=self.historical_db_port,
            name=self.historical_db_name,
            user=self.historical_db_user,
            password=self.historical_db_password,
        )

    @property
    def runtime_db(self) -> DatabaseConfig:
        """Return database configuration for the runtime DB."""

        return DatabaseConfig(
            host=self.runtime_db_host,
            port=self.runtime_db_port,
            name=self.runtime_db_name,
            user=self.runtime_db_user,
            password=self.runtime_db_password,
        )

    @property
    def oracle(self) -> OracleConfig:
        """Return rating oracle configuration."""

        return OracleConfig(
            api_key=self.openai_api_key,
            model=self.openai_model,
            concurrency=max(1, self.oracle_concurrency),
            timeout_seconds=self.oracle_timeout_seconds,
        )

    @property
    def rebalance_day_of_week(self) -> int:
        """Configured rebalance weekday (0=Sunday .. 6=Saturday), clamped."""

        return max(0, min(6, self.rebalance_day_utc))

    @property
    def fallback_symbols(self) -> List[str]:
        """Last-resort universe symbols from ``UNIVERSE_FALLBACK_SYMBOLS``."""

        return [s.strip() for s in self.universe_fallback_symbols.split(",") if s.strip()]

    @property
    def notification_urls(self) -> List[str]:
        """Apprise notification URLs from ``NOTIFY_URLS``."""

        return [u.strip() for u in self.notify_urls.split(",") if u.strip()]


# ============================================================================
# Public API
# ============================================================================


def load_config(env_file: Optional[Path] = None) -> ToprankConfig:
    """Build a :class:`ToprankConfig` from the process environment.

    An explicit ``env_file`` must exist and its values win over anything
    already exported. Without one, ``./.env`` is read if present, but
    exported variables keep precedence.

    Raises:
        FileNotFoundError: ``env_file`` was given and is missing.
    """

    if env_file is None:
        local_env = Path(".env")
        if local_env.exists():
            load_dotenv(local_env)
    elif env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        raise FileNotFoundError(f"No such env file: {env_file}")

    return ToprankConfig()  # type: ignore[call-arg]


_cached_config: Optional[ToprankConfig] = None


def get_config() -> ToprankConfig:
    """Process-wide settings, loaded on first use."""

    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config
