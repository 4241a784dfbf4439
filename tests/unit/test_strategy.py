"""
Toprank: Tests for Strategy Versioning

Covers slug derivation, field drift detection and the persisted-identity
guard in ``StrategyStorage.ensure_strategy``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

import pytest
from pydantic import ValidationError

from toprank.core.config import ToprankConfig
from toprank.core.errors import ConfigMismatchError
from toprank.strategy.config import (
    APP_VERSION,
    COMPARED_FIELDS,
    MODEL_VERSION,
    StrategyConfig,
    default_strategy_config,
    diff_strategy_fields,
    strategy_slug,
)
from toprank.strategy.storage import StrategyStorage


class _StubCursor:
    def __init__(self, rows: List[Optional[tuple]]) -> None:
        self._rows = list(rows)
        self.executed: list[tuple[str, tuple]] = []

    def execute(self, sql: str, params: tuple = ()) -> None:
        self.executed.append((sql, params))

    def fetchone(self) -> Optional[tuple]:
        return self._rows.pop(0) if self._rows else None

    def close(self) -> None:
        pass


class _StubConn:
    def __init__(self, cursor: _StubCursor) -> None:
        self._cursor = cursor
        self.commits = 0

    def cursor(self) -> _StubCursor:
        return self._cursor

    def commit(self) -> None:
        self.commits += 1


class _StubDBManager:
    def __init__(self, rows: List[Optional[tuple]]) -> None:
        self.cursor = _StubCursor(rows)
        self.conn = _StubConn(self.cursor)

    @contextmanager
    def get_runtime_connection(self) -> Iterator[_StubConn]:
        yield self.conn


def _config() -> StrategyConfig:
    return default_strategy_config(ToprankConfig(OPENAI_MODEL="gpt-5.2", STRATEGY_REBALANCE_DAY_UTC=1))


def _persisted_row(config: StrategyConfig, strategy_id: str = "strat-1", **overrides: Any) -> tuple:
    fields = config.persisted_fields()
    fields.update(overrides)
    return (strategy_id, *[fields[name] for name in COMPARED_FIELDS])


class TestStrategyConfig:
    def test_slug_is_derived_from_both_version_axes(self) -> None:
        assert strategy_slug("v1.0.0", "m2.0") == "ai-top20-nasdaq100-v1-0-0-m2-0"

        config = _config()
        assert config.slug == strategy_slug(APP_VERSION, MODEL_VERSION)
        assert config.version == f"{APP_VERSION}-{MODEL_VERSION}"
        assert config.portfolio_size == 20
        assert config.transaction_cost_bps == 15.0

    def test_config_is_immutable_and_closed(self) -> None:
        config = _config()
        with pytest.raises(ValidationError):
            config.portfolio_size = 10  # type: ignore[misc]
        with pytest.raises(ValidationError):
            StrategyConfig(slug="s", name="n", version="v", leverage=2.0)  # type: ignore[call-arg]

    def test_only_equal_weight_is_supported(self) -> None:
        with pytest.raises(ValidationError):
            StrategyConfig(slug="s", name="n", version="v", weighting_method="cap_weight")  # type: ignore[arg-type]

    def test_diff_treats_numeric_types_as_equal(self) -> None:
        from decimal import Decimal

        config = _config()
        persisted = dict(zip(["strategy_id", *COMPARED_FIELDS], _persisted_row(config)))
        persisted["transaction_cost_bps"] = Decimal("15.0")

        assert diff_strategy_fields(config, persisted) == []

    def test_diff_reports_drifted_fields(self) -> None:
        config = _config()
        persisted = dict(
            zip(["strategy_id", *COMPARED_FIELDS], _persisted_row(config, portfolio_size=25, model_name="other"))
        )

        assert diff_strategy_fields(config, persisted) == ["portfolio_size", "model_name"]


class TestStrategyStorage:
    def test_existing_matching_row_is_reused_without_writes(self) -> None:
        config = _config()
        db = _StubDBManager([_persisted_row(config, "strat-existing")])

        assert StrategyStorage(db).ensure_strategy(config) == "strat-existing"  # type: ignore[arg-type]
        assert len(db.cursor.executed) == 1
        assert db.conn.commits == 0

    def test_drifted_row_raises_and_is_not_modified(self) -> None:
        config = _config()
        db = _StubDBManager([_persisted_row(config, transaction_cost_bps=10.0)])

        with pytest.raises(ConfigMismatchError) as info:
            StrategyStorage(db).ensure_strategy(config)  # type: ignore[arg-type]

        assert info.value.fields == ["transaction_cost_bps"]
        assert not any("INSERT" in sql or "UPDATE" in sql for sql, _ in db.cursor.executed)

    def test_missing_row_is_inserted(self) -> None:
        config = _config()
        db = _StubDBManager([None, _persisted_row(config, "strat-new")])

        assert StrategyStorage(db).ensure_strategy(config) == "strat-new"  # type: ignore[arg-type]

        insert_sql, params = db.cursor.executed[1]
        assert "INSERT INTO trading_strategies" in insert_sql
        assert "ON CONFLICT (slug) DO NOTHING" in insert_sql
        assert params[1] == config.slug
        assert db.conn.commits == 1
