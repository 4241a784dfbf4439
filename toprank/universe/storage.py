"""Toprank – Universe snapshot storage.

Schema (runtime DB)::

    universe_snapshots(
        snapshot_id     TEXT PRIMARY KEY,
        index_name      TEXT,
        effective_date  DATE,
        membership_hash TEXT,
        member_count    INTEGER,
        created_at      TIMESTAMPTZ,
        UNIQUE (index_name, membership_hash)
    )

    universe_snapshot_members(
        snapshot_id  TEXT REFERENCES universe_snapshots,
        symbol       TEXT,
        company_name TEXT,
        PRIMARY KEY (snapshot_id, symbol)
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Mapping, Optional, Sequence

from toprank.core.database import DatabaseManager
from toprank.core.ids import generate_uuid
from toprank.core.logging import get_logger
from toprank.universe.types import Constituent, UniverseSnapshot


logger = get_logger(__name__)


@dataclass
class UniverseSnapshotStorage:
    """Persistence helper for content-addressed universe snapshots."""

    db_manager: DatabaseManager
    index_name: str = "nasdaq100"

    def _load_members(self, cursor, snapshot_id: str) -> List[tuple[str, str]]:  # type: ignore[no-untyped-def]
        cursor.execute(
            """
            SELECT symbol, company_name
            FROM universe_snapshot_members
            WHERE snapshot_id = %s
            ORDER BY symbol
            """,
            (snapshot_id,),
        )
        return [(row[0], row[1]) for row in cursor.fetchall()]

    def find_snapshot_by_hash(self, membership_hash: str) -> Optional[UniverseSnapshot]:
        """Return the snapshot with ``membership_hash`` or ``None``."""

        sql = """
            SELECT snapshot_id, effective_date, membership_hash
            FROM universe_snapshots
            WHERE membership_hash = %s AND index_name = %s
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, (membership_hash, self.index_name))
                row = cursor.fetchone()
                if row is None:
                    return None
                members = self._load_members(cursor, row[0])
            finally:
                cursor.close()

        snapshot_id, effective_date, digest = row
        return UniverseSnapshot(
            snapshot_id=snapshot_id,
            effective_date=effective_date,
            membership_hash=digest,
            symbols=tuple(symbol for symbol, _ in members),
            created=False,
        )

    def create_snapshot(
        self,
        effective_date: date,
        membership_hash: str,
        symbols: Sequence[str],
        company_names: Mapping[str, str],
    ) -> UniverseSnapshot:
        """Insert a new snapshot and its membership in one transaction."""

        snapshot_id = generate_uuid()

        snapshot_sql = """
            INSERT INTO universe_snapshots (
                snapshot_id,
                index_name,
                effective_date,
                membership_hash,
                member_count,
                created_at
            ) VALUES (%s, %s, %s, %s, %s, NOW())
        """
        member_sql = """
            INSERT INTO universe_snapshot_members (snapshot_id, symbol, company_name)
            VALUES (%s, %s, %s)
            ON CONFLICT (snapshot_id, symbol) DO NOTHING
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    snapshot_sql,
                    (snapshot_id, self.index_name, effective_date, membership_hash, len(symbols)),
                )
                for symbol in symbols:
                    cursor.execute(member_sql, (snapshot_id, symbol, company_names.get(symbol, symbol)))
                conn.commit()
            finally:
                cursor.close()

        return UniverseSnapshot(
            snapshot_id=snapshot_id,
            effective_date=effective_date,
            membership_hash=membership_hash,
            symbols=tuple(symbols),
            created=True,
        )

    def latest_constituents(self) -> List[Constituent]:
        """Return the membership of the most recent snapshot.

        Used as the first fallback when the universe provider fails.
        """

        sql = """
            SELECT snapshot_id
            FROM universe_snapshots
            WHERE index_name = %s
            ORDER BY effective_date DESC, created_at DESC
            LIMIT 1
        """

        with self.db_manager.get_runtime_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, (self.index_name,))
                row = cursor.fetchone()
                if row is None:
                    return []
                members = self._load_members(cursor, row[0])
            finally:
                cursor.close()

        return [Constituent(symbol=symbol, company_name=name or symbol) for symbol, name in members]
