"""Tests for the error taxonomy and the issue collector."""

from __future__ import annotations

import threading

from toprank.core.database import DatabaseError
from toprank.core.errors import (
    FATAL_ERRORS,
    RECOVERABLE_ERRORS,
    ConfigMismatchError,
    InvariantViolation,
    PersistenceError,
    SchemaViolation,
    TransientFetchError,
)
from toprank.core.issues import IssueCollector
from toprank.data.prices import PriceFeedError
from toprank.scoring.oracle import OracleError


class TestErrorTaxonomy:
    def test_recoverable_and_fatal_groups(self) -> None:
        assert issubclass(OracleError, RECOVERABLE_ERRORS)
        assert issubclass(PriceFeedError, RECOVERABLE_ERRORS)
        assert issubclass(SchemaViolation, RECOVERABLE_ERRORS)
        assert issubclass(ConfigMismatchError, FATAL_ERRORS)
        assert issubclass(DatabaseError, FATAL_ERRORS)
        assert not issubclass(TransientFetchError, FATAL_ERRORS)
        assert not issubclass(InvariantViolation, RECOVERABLE_ERRORS)
        assert not issubclass(PersistenceError, RECOVERABLE_ERRORS)

    def test_config_mismatch_lists_fields(self) -> None:
        exc = ConfigMismatchError("slug-a", ["portfolio_size", "transaction_cost_bps"])
        assert exc.slug == "slug-a"
        assert exc.fields == ["portfolio_size", "transaction_cost_bps"]
        assert "portfolio_size, transaction_cost_bps" in str(exc)


class TestIssueCollector:
    def test_deduplicates_by_subject_context_message(self) -> None:
        issues = IssueCollector()
        issues.record("Oracle rating failed", TransientFetchError("timeout"), context="symbol=AAPL")
        issues.record("Oracle rating failed", TransientFetchError("timeout"), context="symbol=AAPL")
        issues.record("Oracle rating failed", TransientFetchError("timeout"), context="symbol=MSFT")

        assert len(issues) == 2
        assert [i.context for i in issues.issues] == ["symbol=AAPL", "symbol=MSFT"]

    def test_empty_collector_is_falsy(self) -> None:
        issues = IssueCollector()
        assert not issues
        assert issues.render_text() == ""

    def test_render_and_dicts(self) -> None:
        issues = IssueCollector()
        issues.record("Benchmark return unavailable", "no price", context="benchmark=QQQ")
        issues.record("Universe provider fetch failed", "HTTP 503")

        assert issues.render_text().splitlines() == [
            "- Benchmark return unavailable [benchmark=QQQ]: no price",
            "- Universe provider fetch failed: HTTP 503",
        ]
        assert issues.as_dicts()[1] == {
            "subject": "Universe provider fetch failed",
            "context": "",
            "message": "HTTP 503",
        }

    def test_concurrent_records_are_all_kept(self) -> None:
        issues = IssueCollector()

        def worker(offset: int) -> None:
            for i in range(50):
                issues.record("failure", "boom", context=f"symbol=S{offset * 50 + i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(issues) == 400
