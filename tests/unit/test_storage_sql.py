"""
Toprank: Tests for Storage SQL

The storages are exercised against a recording stub connection so the
write patterns (write-once, replace-per-date, upsert) can be checked
without a database.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Iterator, List, Optional

from toprank.performance.storage import PerformanceStorage
from toprank.performance.types import PerformancePoint
from toprank.portfolio.storage import PortfolioStorage
from toprank.portfolio.types import ActionType, Holding, RebalanceAction
from toprank.scoring.storage import ScoreStorage
from toprank.scoring.types import fallback_record
from toprank.validation.diagnostics import QuintileReturn, RegressionResult
from toprank.validation.storage import ValidationStorage


RUN_DATE = date(2025, 6, 2)


class _RecordingCursor:
    def __init__(self, fetchone: Optional[List[Any]] = None, fetchall: Optional[List[Any]] = None) -> None:
        self._fetchone = list(fetchone or [])
        self._fetchall = list(fetchall or [])
        self.executed: List[tuple[str, tuple]] = []
        self.closed = False

    def execute(self, sql: str, params: tuple = ()) -> None:
        self.executed.append((" ".join(sql.split()), params))

    def fetchone(self) -> Any:
        return self._fetchone.pop(0) if self._fetchone else None

    def fetchall(self) -> Any:
        return self._fetchall.pop(0) if self._fetchall else []

    def close(self) -> None:
        self.closed = True


class _RecordingConn:
    def __init__(self, cursor: _RecordingCursor) -> None:
        self._cursor = cursor
        self.commits = 0

    def cursor(self) -> _RecordingCursor:
        return self._cursor

    def commit(self) -> None:
        self.commits += 1


class _RecordingDBManager:
    def __init__(self, cursor: Optional[_RecordingCursor] = None) -> None:
        self.cursor = cursor or _RecordingCursor()
        self.conn = _RecordingConn(self.cursor)

    @contextmanager
    def get_runtime_connection(self) -> Iterator[_RecordingConn]:
        yield self.conn

    def statements(self) -> List[str]:
        return [sql.split(" (")[0] for sql, _ in self.cursor.executed]


class TestScoreStorage:
    def test_scores_are_write_once(self) -> None:
        db = _RecordingDBManager()

        ScoreStorage(db).save_scores("batch-1", [fallback_record("AAPL", RUN_DATE), fallback_record("MSFT", RUN_DATE)])  # type: ignore[arg-type]

        assert len(db.cursor.executed) == 2
        assert all("ON CONFLICT (batch_id, symbol) DO NOTHING" in sql for sql, _ in db.cursor.executed)
        assert db.conn.commits == 1
        assert db.cursor.closed

    def test_empty_records_write_nothing(self) -> None:
        db = _RecordingDBManager()
        ScoreStorage(db).save_scores("batch-1", [])  # type: ignore[arg-type]
        assert db.cursor.executed == []

    def test_load_scores_converts_numeric_columns(self) -> None:
        row = (
            "AAPL", RUN_DATE, 3, Decimal("0.8125"), Decimal("0.6"), "buy",
            "Strong quarter.", ["a", "b"], {"changed": False}, [], [], False,
        )
        db = _RecordingDBManager(_RecordingCursor(fetchall=[[row]]))

        records = ScoreStorage(db).load_scores("batch-1")  # type: ignore[arg-type]

        assert records[0].latent_rank == 0.8125
        assert isinstance(records[0].latent_rank, float)
        assert records[0].risks == ("a", "b")


class TestPortfolioStorage:
    def test_holdings_are_replaced_per_date(self) -> None:
        db = _RecordingDBManager()
        holdings = [Holding("A", 1, 0.5, 3, 0.9), Holding("B", 2, 0.5, 2, 0.8)]

        PortfolioStorage(db).save_holdings("s1", RUN_DATE, "batch-1", holdings)  # type: ignore[arg-type]

        assert db.statements() == [
            "DELETE FROM strategy_portfolio_holdings WHERE strategy_id = %s AND run_date = %s",
            "INSERT INTO strategy_portfolio_holdings",
            "INSERT INTO strategy_portfolio_holdings",
        ]
        assert db.cursor.executed[0][1] == ("s1", RUN_DATE)
        assert db.conn.commits == 1

    def test_actions_are_replaced_per_date(self) -> None:
        db = _RecordingDBManager()
        actions = [RebalanceAction("A", ActionType.ENTER, None, 0.5, "Entered top 2")]

        PortfolioStorage(db).save_actions("s1", RUN_DATE, actions)  # type: ignore[arg-type]

        assert db.statements()[0].startswith("DELETE FROM strategy_rebalance_actions")
        assert db.cursor.executed[1][1][3] == "enter"

    def test_first_run_has_no_previous_holdings(self) -> None:
        db = _RecordingDBManager(_RecordingCursor(fetchone=[(None,)]))
        assert PortfolioStorage(db).load_previous_holdings("s1", RUN_DATE) == (None, [])  # type: ignore[arg-type]

    def test_previous_holdings_load_latest_earlier_date(self) -> None:
        previous = date(2025, 5, 26)
        cursor = _RecordingCursor(
            fetchone=[(previous,)],
            fetchall=[[("A", 1, Decimal("0.5"), 3, Decimal("0.9")), ("B", 2, Decimal("0.5"), None, None)]],
        )
        db = _RecordingDBManager(cursor)

        run_date, holdings = PortfolioStorage(db).load_previous_holdings("s1", RUN_DATE)  # type: ignore[arg-type]

        assert run_date == previous
        assert holdings == [Holding("A", 1, 0.5, 3, 0.9), Holding("B", 2, 0.5, None, None)]


class TestPerformanceStorage:
    def test_point_is_upserted_on_strategy_and_date(self) -> None:
        db = _RecordingDBManager()
        point = PerformancePoint(
            strategy_id="s1",
            run_date=RUN_DATE,
            sequence_number=1,
            previous_run_date=None,
            turnover=1.0,
            transaction_cost=0.0015,
            gross_return=0.0,
            net_return=-0.0015,
            strategy_equity=9985.0,
            benchmark_returns={"qqq": 0.0, "qqqe": 0.0, "spy": 0.0},
            benchmark_equities={"qqq": 10_000.0, "qqqe": 10_000.0, "spy": 10_000.0},
        )

        PerformanceStorage(db).save_point(point)  # type: ignore[arg-type]

        sql, params = db.cursor.executed[0]
        assert "ON CONFLICT (strategy_id, run_date) DO UPDATE" in sql
        assert "strategy_equity = EXCLUDED.strategy_equity" in sql
        assert "qqqe_equity" in sql
        assert len(params) == 15
        assert params[8] == 9985.0

    def test_latest_point_maps_row(self) -> None:
        row = ("s1", RUN_DATE, 3, date(2025, 5, 26), Decimal("0.1"), Decimal("0.00015"), Decimal("0.01"),
               Decimal("0.00985"), Decimal("10100.5"), Decimal("0.02"), Decimal("10200"), None,
               Decimal("10000"), Decimal("0.0"), Decimal("10000"))
        db = _RecordingDBManager(_RecordingCursor(fetchall=[[row]]))

        point = PerformanceStorage(db).latest_point("s1")  # type: ignore[arg-type]

        assert point is not None
        assert point.sequence_number == 3
        assert point.strategy_equity == 10100.5
        assert point.benchmark_returns == {"qqq": 0.02, "qqqe": 0.0, "spy": 0.0}
        assert "ORDER BY run_date DESC LIMIT 1" in db.cursor.executed[0][0]


class TestValidationStorage:
    def test_diagnostics_are_replaced_per_key(self) -> None:
        db = _RecordingDBManager()
        quintiles = [QuintileReturn(1, 2, 0.01, 0.1, 0.2), QuintileReturn(2, 2, 0.02, 0.3, 0.4)]

        ValidationStorage(db).replace_diagnostics(  # type: ignore[arg-type]
            "s1", RUN_DATE, 1, date(2025, 6, 9), quintiles, RegressionResult(0.01, 0.02, 0.5, 10)
        )

        assert db.statements() == [
            "DELETE FROM strategy_quintile_returns WHERE strategy_id = %s AND formation_date = %s AND horizon_weeks = %s",
            "INSERT INTO strategy_quintile_returns",
            "INSERT INTO strategy_quintile_returns",
            "DELETE FROM strategy_cross_sectional_regressions WHERE strategy_id = %s AND formation_date = %s AND horizon_weeks = %s",
            "INSERT INTO strategy_cross_sectional_regressions",
        ]
        assert db.conn.commits == 1

    def test_degenerate_regression_leaves_no_row(self) -> None:
        db = _RecordingDBManager()

        ValidationStorage(db).replace_diagnostics("s1", RUN_DATE, 4, date(2025, 6, 30), [], None)  # type: ignore[arg-type]

        statements = db.statements()
        assert statements[-1].startswith("DELETE FROM strategy_cross_sectional_regressions")
        assert not any(s.startswith("INSERT") for s in statements)
