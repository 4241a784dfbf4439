"""
Toprank: Tests for the Universe Provider Chain and Snapshot Manager
"""

from __future__ import annotations

import hashlib
from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence

import pytest

from toprank.core.errors import InvariantViolation, TransientFetchError
from toprank.core.issues import IssueCollector
from toprank.universe.provider import StaticUniverseProvider, parse_nasdaq_rows, resolve_universe
from toprank.universe.snapshot import SnapshotManager, membership_hash, normalize_symbols
from toprank.universe.types import Constituent, UniverseSnapshot


class _InMemorySnapshotStorage:
    def __init__(self) -> None:
        self.by_hash: Dict[str, UniverseSnapshot] = {}
        self.created = 0

    def find_snapshot_by_hash(self, membership_hash: str) -> Optional[UniverseSnapshot]:
        return self.by_hash.get(membership_hash)

    def create_snapshot(
        self,
        effective_date: date,
        membership_hash: str,
        symbols: Sequence[str],
        company_names: Mapping[str, str],
    ) -> UniverseSnapshot:
        self.created += 1
        snapshot = UniverseSnapshot(
            snapshot_id=f"snap-{self.created}",
            effective_date=effective_date,
            membership_hash=membership_hash,
            symbols=tuple(symbols),
            created=True,
        )
        self.by_hash[membership_hash] = snapshot
        return snapshot


class _FailingProvider:
    def fetch_constituents(self) -> List[Constituent]:
        raise TransientFetchError("Nasdaq API error: 503")


class TestMembershipHash:
    def test_normalize_dedupes_sorts_and_uppercases(self) -> None:
        assert normalize_symbols(["msft", " AAPL", "MSFT", "", "nvda "]) == ["AAPL", "MSFT", "NVDA"]

    def test_hash_is_sha256_of_sorted_comma_joined_symbols(self) -> None:
        expected = hashlib.sha256("AAPL,MSFT,NVDA".encode("utf-8")).hexdigest()
        assert membership_hash(["NVDA", "aapl", "MSFT"]) == expected
        assert membership_hash(["AAPL", "MSFT", "NVDA", "MSFT"]) == expected


class TestSnapshotManager:
    def test_unchanged_membership_reuses_snapshot(self) -> None:
        storage = _InMemorySnapshotStorage()
        manager = SnapshotManager(storage)

        first = manager.ensure_snapshot(date(2025, 6, 2), ["AAPL", "MSFT"])
        second = manager.ensure_snapshot(date(2025, 6, 9), ["msft", "AAPL"])

        assert first.created
        assert second.snapshot_id == first.snapshot_id
        assert storage.created == 1

    def test_membership_change_creates_new_snapshot(self) -> None:
        storage = _InMemorySnapshotStorage()
        manager = SnapshotManager(storage)

        first = manager.ensure_snapshot(date(2025, 6, 2), ["AAPL", "MSFT"])
        second = manager.ensure_snapshot(date(2025, 6, 9), ["AAPL", "MSFT", "NVDA"])

        assert second.snapshot_id != first.snapshot_id
        assert second.symbols == ("AAPL", "MSFT", "NVDA")
        assert storage.created == 2

    def test_empty_membership_is_fatal(self) -> None:
        with pytest.raises(InvariantViolation):
            SnapshotManager(_InMemorySnapshotStorage()).ensure_snapshot(date(2025, 6, 2), ["", "  "])


class TestUniverseProvider:
    def test_parse_nasdaq_rows_drops_blank_symbols(self) -> None:
        payload = {
            "data": {
                "data": {
                    "rows": [
                        {"symbol": "aapl", "companyName": "Apple Inc.", "marketCap": "3,000,000"},
                        {"symbol": "  ", "companyName": "Blank"},
                        {"symbol": "MSFT"},
                    ]
                }
            }
        }

        rows = parse_nasdaq_rows(payload)

        assert [c.symbol for c in rows] == ["AAPL", "MSFT"]
        assert rows[0].company_name == "Apple Inc."
        assert rows[1].company_name == "MSFT"

    def test_parse_nasdaq_rows_tolerates_unexpected_shape(self) -> None:
        assert parse_nasdaq_rows({"data": None}) == []
        assert parse_nasdaq_rows([]) == []

    def test_provider_success_short_circuits_chain(self) -> None:
        issues = IssueCollector()
        result = resolve_universe(StaticUniverseProvider(["AAPL"]), lambda: [], ["MSFT"], issues)

        assert [c.symbol for c in result] == ["AAPL"]
        assert not issues

    def test_falls_back_to_latest_persisted_snapshot(self) -> None:
        issues = IssueCollector()
        persisted = [Constituent(symbol="NVDA", company_name="NVIDIA")]

        result = resolve_universe(_FailingProvider(), lambda: persisted, ["MSFT"], issues)

        assert result == persisted
        assert [i.subject for i in issues.issues] == ["Universe provider fetch failed"]

    def test_falls_back_to_configured_symbols(self) -> None:
        issues = IssueCollector()

        result = resolve_universe(_FailingProvider(), lambda: [], ["msft", "AAPL"], issues)

        assert [c.symbol for c in result] == ["MSFT", "AAPL"]
        assert len(issues) == 2

    def test_all_sources_failing_returns_empty(self) -> None:
        issues = IssueCollector()
        assert resolve_universe(_FailingProvider(), lambda: [], [], issues) == []
        assert issues.issues[-1].subject == "No universe symbols available"
