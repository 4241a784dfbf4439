"""Toprank – Universe package.

Exposes the constituent provider with its fallback chain, the
content-hash snapshot manager, and snapshot storage.
"""

from .types import Constituent, UniverseSnapshot
from .snapshot import SnapshotManager, membership_hash, normalize_symbols
from .storage import UniverseSnapshotStorage
from .provider import NasdaqUniverseProvider, StaticUniverseProvider, UniverseProvider, resolve_universe

__all__ = [
    "Constituent",
    "NasdaqUniverseProvider",
    "SnapshotManager",
    "StaticUniverseProvider",
    "UniverseProvider",
    "UniverseSnapshot",
    "UniverseSnapshotStorage",
    "membership_hash",
    "normalize_symbols",
    "resolve_universe",
]
