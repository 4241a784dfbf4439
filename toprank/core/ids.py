"""
Toprank: ID Generation Utilities

This module contains helper functions for generating identifiers used
throughout the system. Centralising ID generation keeps formats
consistent across storages.

Key responsibilities:
- Generate UUID-based identifiers
- Provide human-readable batch keys for grouping a run's rows

External dependencies:
- uuid: Standard library UUID generation

Thread safety: Thread-safe (stateless functions)
"""

# ============================================================================
# Imports
# ============================================================================

from __future__ import annotations

import uuid
from datetime import date

# ============================================================================
# Public API
# ============================================================================


def generate_uuid() -> str:
    """Generate a random UUIDv4 string."""

    return str(uuid.uuid4())


def generate_batch_key(run_date: date, strategy_slug: str) -> str:
    """Return a readable key for a strategy run batch.

    The key has the form ``YYYYMMDD_<slug>`` and is stable for a given
    (run date, strategy) pair, so re-running a date resolves to the same
    batch.
    """

    return f"{run_date.strftime('%Y%m%d')}_{strategy_slug}"
