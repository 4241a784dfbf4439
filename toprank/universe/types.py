"""Toprank – Universe core types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple


@dataclass(frozen=True)
class Constituent:
    """A single index constituent as reported by the universe provider.

    Price fields are kept as the provider's raw strings; they are
    informational and never used for return computation.
    """

    symbol: str
    company_name: str
    market_cap: Optional[str] = None
    last_sale_price: Optional[str] = None
    net_change: Optional[str] = None
    percentage_change: Optional[str] = None


@dataclass(frozen=True)
class UniverseSnapshot:
    """Content-addressed universe membership.

    Attributes:
        snapshot_id: Identifier of the persisted snapshot row.
        effective_date: Date on which this membership was first observed.
        membership_hash: SHA-256 over the sorted, comma-joined symbols.
        symbols: Sorted, deduplicated member symbols.
        created: ``True`` when this call created the snapshot, ``False``
            when an existing snapshot with the same hash was reused.
    """

    snapshot_id: str
    effective_date: date
    membership_hash: str
    symbols: Tuple[str, ...]
    created: bool = False
