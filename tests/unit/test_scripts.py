"""
Toprank: Tests for the command-line entry points

Both CLIs are run in-process with storages and configuration replaced,
so nothing here needs a database or network access.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import pytest

from toprank.core.config import ToprankConfig
from toprank.performance.types import PerformancePoint
from toprank.portfolio.types import ActionType, RebalanceAction
from toprank.scripts import run_weekly_rebalance, show_performance


WEEK_1 = date(2025, 6, 2)
WEEK_2 = date(2025, 6, 9)


def _config(monkeypatch: pytest.MonkeyPatch, **env: str) -> ToprankConfig:
    for name in ("OPENAI_API_KEY", "EODHD_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return ToprankConfig()  # type: ignore[call-arg]


def _point(run_date: date, sequence_number: int, equity: float) -> PerformancePoint:
    return PerformancePoint(
        strategy_id="strat-1",
        run_date=run_date,
        sequence_number=sequence_number,
        previous_run_date=None,
        turnover=1.0,
        transaction_cost=0.0015,
        gross_return=0.0,
        net_return=-0.0015,
        strategy_equity=equity,
        benchmark_returns={"qqq": 0.0},
        benchmark_equities={"qqq": 10_000.0},
    )


class _StrategyStorage:
    def __init__(self, db_manager: Any) -> None:
        pass

    def load_strategy_row(self, slug: str) -> Optional[Dict[str, Any]]:
        return {"strategy_id": "strat-1", "slug": slug}


class _PerformanceStorage:
    def __init__(self, db_manager: Any) -> None:
        pass

    def load_series(self, strategy_id: str) -> List[PerformancePoint]:
        return [_point(WEEK_1, 1, 9_985.0), _point(WEEK_2, 2, 10_050.0)]


class _PortfolioStorage:
    requested: List[Any] = []

    def __init__(self, db_manager: Any) -> None:
        pass

    def load_actions(self, strategy_id: str, run_date: date) -> List[RebalanceAction]:
        self.requested.append((strategy_id, run_date))
        return [
            RebalanceAction("AMZN", ActionType.ENTER, None, 0.05, "Entered top 20"),
            RebalanceAction("NVDA", ActionType.EXIT_RANK, 0.05, None, "Dropped out of top 20"),
        ]


class TestRunWeeklyRebalance:
    @pytest.fixture(autouse=True)
    def _quiet_logging(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(run_weekly_rebalance, "setup_logging", lambda config: None)

    def test_missing_openai_key_exits_with_message(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = _config(monkeypatch)
        monkeypatch.setattr(run_weekly_rebalance, "get_config", lambda: config)

        code = run_weekly_rebalance.main(["--run-date", "2025-06-02"])

        assert code == 1
        err = capsys.readouterr().err
        assert err.startswith("Cannot start run:")
        assert "OPENAI_API_KEY" in err
        assert "Traceback" not in err

    def test_missing_eodhd_key_exits_with_message(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = _config(monkeypatch, OPENAI_API_KEY="sk-test")
        monkeypatch.setattr(run_weekly_rebalance, "get_config", lambda: config)

        code = run_weekly_rebalance.main(["--run-date", "2025-06-02", "--price-source", "eodhd"])

        assert code == 1
        assert "EODHD_API_KEY" in capsys.readouterr().err


class TestShowPerformance:
    def test_prints_latest_rebalance_actions(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = _config(monkeypatch)
        monkeypatch.setattr(show_performance, "get_config", lambda: config)
        monkeypatch.setattr(show_performance, "setup_logging", lambda config: None)
        monkeypatch.setattr(show_performance, "StrategyStorage", _StrategyStorage)
        monkeypatch.setattr(show_performance, "PerformanceStorage", _PerformanceStorage)
        monkeypatch.setattr(show_performance, "PortfolioStorage", _PortfolioStorage)
        _PortfolioStorage.requested = []

        code = show_performance.main(["--slug", "test-top20"])

        assert code == 0
        assert _PortfolioStorage.requested == [("strat-1", WEEK_2)]
        out = capsys.readouterr().out
        assert "Strategy test-top20: 2 weekly point(s)" in out
        assert "Latest rebalance 2025-06-09: 2 action(s)" in out
        assert "enter      AMZN     Entered top 20" in out
        assert "exit_rank  NVDA     Dropped out of top 20" in out
