"""Toprank – Price feeds.

The pipeline needs a single price primitive: the most recent close on or
before a date. Holdings returns, benchmark returns and forward returns
for the signal diagnostics are all built from it via
:func:`price_return`.

Two implementations are provided:

- :class:`DatabasePriceFeed` reads ``prices_daily`` in the historical
  database (``instrument_id`` holds the plain ticker).
- :class:`EodhdPriceFeed` calls the EODHD ``/eod`` endpoint over HTTP.

Both raise :class:`PriceFeedError` (a recoverable
:class:`TransientFetchError`) when no usable price exists.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Protocol, Tuple

import requests

from toprank.core.database import DatabaseManager
from toprank.core.errors import TransientFetchError
from toprank.core.logging import get_logger


logger = get_logger(__name__)


class PriceFeedError(TransientFetchError):
    """Raised when a close price cannot be obtained."""


class PriceFeed(Protocol):
    """Protocol for close-price lookups."""

    def get_close_on_or_before(self, symbol: str, as_of_date: date) -> float:  # pragma: no cover - interface
        """Return the latest positive close for ``symbol`` on or before ``as_of_date``."""


def price_return(feed: PriceFeed, symbol: str, start_date: date, end_date: date) -> float:
    """Return the simple price return of ``symbol`` from ``start_date`` to ``end_date``."""

    start_px = feed.get_close_on_or_before(symbol, start_date)
    end_px = feed.get_close_on_or_before(symbol, end_date)
    if not start_px > 0.0:
        raise PriceFeedError(f"Non-positive start price {start_px!r} for {symbol} on {start_date}")
    result = end_px / start_px - 1.0
    if not math.isfinite(result):
        raise PriceFeedError(f"Non-finite return for {symbol} from {start_date} to {end_date}")
    return result


def _validated_close(symbol: str, as_of_date: date, value: object) -> float:
    try:
        close = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise PriceFeedError(f"Invalid close {value!r} for {symbol} on {as_of_date}") from exc
    if not math.isfinite(close) or close <= 0.0:
        raise PriceFeedError(f"Invalid close {close!r} for {symbol} on {as_of_date}")
    return close


# ============================================================================
# Database-backed feed
# ============================================================================


@dataclass
class DatabasePriceFeed:
    """Close prices from ``prices_daily`` in the historical database.

    Lookups are memoised per ``(symbol, date)`` for the lifetime of the
    feed, which is one pipeline run.
    """

    db_manager: DatabaseManager
    max_staleness_days: int = 10

    def __post_init__(self) -> None:
        self._cache: Dict[Tuple[str, date], float] = {}

    def get_close_on_or_before(self, symbol: str, as_of_date: date) -> float:
        key = (symbol, as_of_date)
        if key in self._cache:
            return self._cache[key]

        sql = """
            SELECT trade_date, adjusted_close
            FROM prices_daily
            WHERE instrument_id = %s
              AND trade_date <= %s
              AND trade_date >= %s
            ORDER BY trade_date DESC
            LIMIT 1
        """

        earliest = as_of_date - timedelta(days=self.max_staleness_days)
        with self.db_manager.get_historical_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, (symbol, as_of_date, earliest))
                row = cursor.fetchone()
            finally:
                cursor.close()

        if row is None:
            raise PriceFeedError(f"No price for {symbol} on or before {as_of_date}")

        close = _validated_close(symbol, as_of_date, row[1])
        self._cache[key] = close
        return close


# ============================================================================
# EODHD-backed feed
# ============================================================================


class EodhdPriceFeed:
    """Close prices from the EODHD ``/eod`` endpoint.

    Parameters
    ----------
    api_token:
        EODHD API token.
    base_url:
        Base URL for the API.
    timeout_seconds:
        Per-request timeout in seconds.
    exchange_suffix:
        Suffix appended to plain tickers, e.g. ``"US"`` gives ``AAPL.US``.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://eodhd.com/api",
        timeout_seconds: float = 30.0,
        exchange_suffix: str = "US",
        max_staleness_days: int = 10,
        session: requests.Session | None = None,
    ) -> None:
        if not api_token:
            raise PriceFeedError("EODHD_API_KEY is not set; cannot initialise EodhdPriceFeed")

        self._api_token = api_token
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._exchange_suffix = exchange_suffix
        self._max_staleness_days = max_staleness_days
        self._session = session or requests.Session()
        self._cache: Dict[Tuple[str, date], float] = {}

    def _eodhd_symbol(self, symbol: str) -> str:
        if "." in symbol or not self._exchange_suffix:
            return symbol
        return f"{symbol}.{self._exchange_suffix}"

    def get_close_on_or_before(self, symbol: str, as_of_date: date) -> float:
        key = (symbol, as_of_date)
        if key in self._cache:
            return self._cache[key]

        params: dict[str, str] = {
            "api_token": self._api_token,
            "fmt": "json",
            "from": (as_of_date - timedelta(days=self._max_staleness_days)).isoformat(),
            "to": as_of_date.isoformat(),
        }
        url = f"{self._base_url}/eod/{self._eodhd_symbol(symbol)}"
        logger.debug("EodhdPriceFeed.get_close_on_or_before: GET %s to=%s", url, params["to"])

        try:
            response = self._session.get(url, params=params, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise PriceFeedError(f"EODHD request failed for symbol {symbol!r}: {exc}") from exc

        if response.status_code != 200:
            # Truncated to avoid leaking the token in logs.
            logger.error(
                "EODHD request failed: status=%s symbol=%s body=%s",
                response.status_code,
                symbol,
                response.text[:200],
            )
            raise PriceFeedError(f"EODHD /eod call failed with status {response.status_code} for {symbol!r}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise PriceFeedError(f"Invalid JSON in EODHD response for {symbol!r}") from exc

        best: Tuple[date, object] | None = None
        for row in payload or []:
            try:
                trade_date = date.fromisoformat(row["date"])
                value = row.get("adjusted_close", row["close"])
            except (KeyError, TypeError, ValueError) as exc:
                raise PriceFeedError(f"Malformed EODHD row for {symbol!r}: {row!r}") from exc
            if trade_date <= as_of_date and (best is None or trade_date > best[0]):
                best = (trade_date, value)

        if best is None:
            raise PriceFeedError(f"No EODHD price for {symbol} on or before {as_of_date}")

        close = _validated_close(symbol, as_of_date, best[1])
        self._cache[key] = close
        return close
