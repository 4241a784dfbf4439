"""
Toprank: Rebalance calendar helpers

Small date helpers used to resolve the weekly rebalance date of a run.

Weekday numbering follows the ``STRATEGY_REBALANCE_DAY_UTC`` convention
used in configuration: 0 = Sunday, 1 = Monday, ..., 6 = Saturday.

External dependencies:
- datetime: Standard library date arithmetic only

Thread safety: Thread-safe (stateless functions)
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utc_today() -> date:
    """Return today's date in UTC."""

    return datetime.now(timezone.utc).date()


def sunday_based_weekday(as_of_date: date) -> int:
    """Return the weekday of ``as_of_date`` with Sunday as 0."""

    return (as_of_date.weekday() + 1) % 7


def resolve_rebalance_date(as_of_date: date, rebalance_day_of_week: int) -> date:
    """Return the most recent rebalance weekday on or before ``as_of_date``.

    Args:
        as_of_date: Reference date (usually today in UTC).
        rebalance_day_of_week: Target weekday, 0 = Sunday .. 6 = Saturday.
            Values outside the range are clamped.
    """

    target = max(0, min(6, rebalance_day_of_week))
    offset = (sunday_based_weekday(as_of_date) - target) % 7
    return as_of_date - timedelta(days=offset)
