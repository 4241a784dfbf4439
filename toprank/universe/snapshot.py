"""Toprank – Universe snapshot manager.

Snapshots deduplicate universe membership by content hash. Calling
:meth:`SnapshotManager.ensure_snapshot` every run is safe: when the
membership is unchanged the existing snapshot is returned and nothing is
written.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Mapping, Optional, Protocol, Sequence

from toprank.core.errors import InvariantViolation
from toprank.core.logging import get_logger
from toprank.universe.types import UniverseSnapshot


logger = get_logger(__name__)


def normalize_symbols(symbols: Iterable[str]) -> List[str]:
    """Return upper-cased, stripped, deduplicated and sorted symbols."""

    return sorted({s.strip().upper() for s in symbols if s and s.strip()})


def membership_hash(symbols: Sequence[str]) -> str:
    """Return the SHA-256 content hash of a symbol set."""

    payload = ",".join(normalize_symbols(symbols))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class SnapshotStorageLike(Protocol):
    """Persistence operations required by :class:`SnapshotManager`."""

    def find_snapshot_by_hash(self, membership_hash: str) -> Optional[UniverseSnapshot]:  # pragma: no cover - interface
        ...

    def create_snapshot(
        self,
        effective_date: date,
        membership_hash: str,
        symbols: Sequence[str],
        company_names: Mapping[str, str],
    ) -> UniverseSnapshot:  # pragma: no cover - interface
        ...


@dataclass
class SnapshotManager:
    """Idempotence boundary for universe membership."""

    storage: SnapshotStorageLike

    def ensure_snapshot(
        self,
        effective_date: date,
        symbols: Iterable[str],
        company_names: Mapping[str, str] | None = None,
    ) -> UniverseSnapshot:
        """Return the snapshot for ``symbols``, creating it only on change.

        Raises:
            InvariantViolation: If the membership is empty.
        """

        members = normalize_symbols(symbols)
        if not members:
            raise InvariantViolation("Universe snapshot membership is empty")

        digest = membership_hash(members)
        existing = self.storage.find_snapshot_by_hash(digest)
        if existing is not None:
            logger.info(
                "SnapshotManager.ensure_snapshot: reused snapshot=%s hash=%s members=%d",
                existing.snapshot_id,
                digest[:12],
                len(existing.symbols),
            )
            return existing

        snapshot = self.storage.create_snapshot(
            effective_date=effective_date,
            membership_hash=digest,
            symbols=members,
            company_names=dict(company_names or {}),
        )
        logger.info(
            "SnapshotManager.ensure_snapshot: created snapshot=%s date=%s hash=%s members=%d",
            snapshot.snapshot_id,
            effective_date,
            digest[:12],
            len(members),
        )
        return snapshot
