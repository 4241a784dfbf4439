"""Toprank – Universe provider and fallback chain.

The live constituent list comes from the public Nasdaq list-type
endpoint. Because that endpoint is unreliable, :func:`resolve_universe`
applies a fallback chain instead of aborting the run:

1. the live provider;
2. the membership of the most recent persisted snapshot;
3. the static ``UNIVERSE_FALLBACK_SYMBOLS`` list from configuration.

Each failed step is recorded as a recoverable issue.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Protocol, Sequence

import requests

from toprank.core.errors import TransientFetchError
from toprank.core.issues import IssueCollector
from toprank.core.logging import get_logger
from toprank.universe.types import Constituent


logger = get_logger(__name__)

NASDAQ_100_ENDPOINT = "https://api.nasdaq.com/api/quote/list-type/nasdaq100"


class UniverseProvider(Protocol):
    """Source of the current index constituents."""

    def fetch_constituents(self) -> List[Constituent]:  # pragma: no cover - interface
        ...


def parse_nasdaq_rows(payload: Any) -> List[Constituent]:
    """Parse the Nasdaq list-type payload into constituents.

    Rows without a symbol are dropped; a payload without the expected
    ``data.data.rows`` list yields an empty result.
    """

    try:
        rows = payload["data"]["data"]["rows"]
    except (KeyError, TypeError):
        return []
    if not isinstance(rows, list):
        return []

    constituents: List[Constituent] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        symbol = str(row.get("symbol") or "").strip().upper()
        if not symbol:
            continue
        constituents.append(
            Constituent(
                symbol=symbol,
                company_name=row.get("companyName") or symbol,
                market_cap=row.get("marketCap"),
                last_sale_price=row.get("lastSalePrice"),
                net_change=row.get("netChange"),
                percentage_change=row.get("percentageChange"),
            )
        )
    return constituents


class NasdaqUniverseProvider:
    """HTTP client for the Nasdaq-100 constituent list."""

    def __init__(
        self,
        endpoint: str = NASDAQ_100_ENDPOINT,
        timeout_seconds: int = 30,
        session: requests.Session | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def fetch_constituents(self) -> List[Constituent]:
        headers = {
            "user-agent": "Mozilla/5.0 (NASDAQ 100 fetch)",
            "accept": "application/json",
        }
        try:
            response = self._session.get(self._endpoint, headers=headers, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise TransientFetchError(f"Nasdaq request failed: {exc}") from exc

        if response.status_code != 200:
            raise TransientFetchError(f"Nasdaq API error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransientFetchError("Invalid JSON in Nasdaq response") from exc

        constituents = parse_nasdaq_rows(payload)
        logger.info("NasdaqUniverseProvider.fetch_constituents: fetched %d rows", len(constituents))
        return constituents


@dataclass
class StaticUniverseProvider:
    """Provider returning a fixed symbol list (tests, configured fallback)."""

    symbols: Sequence[str]

    def fetch_constituents(self) -> List[Constituent]:
        return [Constituent(symbol=s.strip().upper(), company_name=s.strip().upper()) for s in self.symbols if s.strip()]


def resolve_universe(
    provider: UniverseProvider,
    load_latest_persisted: Callable[[], List[Constituent]],
    fallback_symbols: Sequence[str],
    issues: IssueCollector,
) -> List[Constituent]:
    """Return constituents from the first source in the chain that has any.

    An empty list means every source failed; the caller decides whether
    that is fatal.
    """

    try:
        constituents = provider.fetch_constituents()
        if not constituents:
            raise TransientFetchError("Universe provider returned no rows")
        return constituents
    except TransientFetchError as exc:
        issues.record("Universe provider fetch failed", exc)

    constituents = load_latest_persisted()
    if constituents:
        logger.info("resolve_universe: using latest persisted snapshot (%d members)", len(constituents))
        return constituents
    issues.record("Universe fallback failed", "No persisted snapshot available")

    if fallback_symbols:
        logger.info("resolve_universe: using configured fallback symbols (%d)", len(fallback_symbols))
        return StaticUniverseProvider(fallback_symbols).fetch_constituents()

    issues.record("No universe symbols available", "All fallbacks failed")
    return []
