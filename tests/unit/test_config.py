"""
Toprank: Tests for Configuration Management

Test suite for ``toprank.core.config``. Covers:
- Default configuration values
- Environment variable overrides
- .env loading behaviour
- Derived properties (oracle, fallback symbols, rebalance weekday)
"""

from __future__ import annotations

from pathlib import Path

import pytest

from toprank.core.config import ToprankConfig, get_config, load_config


class TestToprankConfig:
    """Tests for the ToprankConfig settings model."""

    def test_default_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("OPENAI_MODEL", "ORACLE_CONCURRENCY", "STRATEGY_REBALANCE_DAY_UTC", "ENVIRONMENT"):
            monkeypatch.delenv(name, raising=False)

        config = ToprankConfig()

        assert config.historical_db_port == 5432
        assert config.runtime_db_port == 5432
        assert config.environment == "development"
        assert config.openai_model == "gpt-5.2"
        assert config.oracle_concurrency == 20
        assert config.rebalance_day_of_week == 1

    def test_env_var_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RUNTIME_DB_HOST", "test-host")
        monkeypatch.setenv("RUNTIME_DB_PORT", "5439")
        monkeypatch.setenv("ORACLE_CONCURRENCY", "7")

        config = ToprankConfig()

        assert config.runtime_db_host == "test-host"
        assert config.runtime_db_port == 5439
        assert config.oracle.concurrency == 7

    def test_database_properties_return_databaseconfig(self) -> None:
        config = ToprankConfig()

        assert config.historical_db.name == config.historical_db_name
        assert config.runtime_db.host == config.runtime_db_host
        assert config.runtime_db.port == config.runtime_db_port

    def test_rebalance_day_is_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STRATEGY_REBALANCE_DAY_UTC", "9")
        assert ToprankConfig().rebalance_day_of_week == 6

        monkeypatch.setenv("STRATEGY_REBALANCE_DAY_UTC", "-3")
        assert ToprankConfig().rebalance_day_of_week == 0

    def test_comma_separated_lists(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UNIVERSE_FALLBACK_SYMBOLS", " AAPL, msft ,,NVDA ")
        monkeypatch.setenv("NOTIFY_URLS", "json://localhost/hook, ")

        config = ToprankConfig()

        assert config.fallback_symbols == ["AAPL", "msft", "NVDA"]
        assert config.notification_urls == ["json://localhost/hook"]

    def test_oracle_concurrency_never_below_one(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ORACLE_CONCURRENCY", "0")
        assert ToprankConfig().oracle.concurrency == 1


class TestLoadConfig:
    """Tests for the top-level load_config function."""

    def test_load_from_explicit_env_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        # Registered first so monkeypatch restores them after the override.
        monkeypatch.setenv("HISTORICAL_DB_HOST", "before")
        monkeypatch.setenv("RUNTIME_DB_PORT", "5432")

        env_path = tmp_path / ".env.test"
        env_path.write_text("HISTORICAL_DB_HOST=from_env_file\nRUNTIME_DB_PORT=5440\n")

        config = load_config(env_file=env_path)

        assert config.historical_db_host == "from_env_file"
        assert config.runtime_db_port == 5440

    def test_missing_explicit_env_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(env_file=tmp_path / "does_not_exist.env")


class TestGetConfigSingleton:
    def test_get_config_returns_singleton(self) -> None:
        assert get_config() is get_config()
