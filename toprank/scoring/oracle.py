"""Toprank – Rating oracle client.

The rating oracle is an LLM with web search, called through the OpenAI
Responses API with a strict structured-output schema. The client is
built with ``max_retries=0``: a failed call is resolved immediately to
the scorer's neutral fallback, never retried here.

Besides the parsed rating, the client extracts provenance from the
response: web-search sources and URL citations, both deduplicated by URL.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Tuple

from openai import OpenAI, OpenAIError

from toprank.core.config import OracleConfig
from toprank.core.errors import TransientFetchError
from toprank.core.logging import get_logger
from toprank.scoring.prompt import SYSTEM_INSTRUCTION, RatingRequest, build_rating_prompt
from toprank.scoring.schema import OracleRating, parse_rating, rating_json_schema


logger = get_logger(__name__)


class OracleError(TransientFetchError):
    """Raised when the oracle call fails, times out or refuses."""


@dataclass(frozen=True)
class OracleResponse:
    """Validated oracle output plus provenance."""

    rating: OracleRating
    citations: Tuple[Dict[str, Any], ...] = ()
    sources: Tuple[Dict[str, Any], ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


class RatingOracle(Protocol):
    """Protocol for the external rating oracle."""

    def rate(self, request: RatingRequest) -> OracleResponse:  # pragma: no cover - interface
        """Return a validated rating or raise a recoverable error."""


# ============================================================================
# Response helpers
# ============================================================================


def extract_output_text(payload: Dict[str, Any]) -> str:
    """Return the text output of a Responses API payload."""

    text = payload.get("output_text")
    if isinstance(text, str) and text:
        return text

    chunks: List[str] = []
    for item in payload.get("output") or []:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            if isinstance(content, dict) and content.get("text"):
                chunks.append(str(content["text"]))
    return "\n".join(chunks).strip()


def find_refusal(payload: Dict[str, Any]) -> str | None:
    """Return the refusal message if the model refused, else ``None``."""

    for item in payload.get("output") or []:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            if isinstance(content, dict) and content.get("type") == "refusal":
                return str(content.get("refusal") or "refused")
    return None


def _unique_by_url(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen: Dict[str, Dict[str, Any]] = {}
    for item in items:
        url = item.get("url") or item.get("link")
        if url and url not in seen:
            seen[url] = item
    return list(seen.values())


def extract_sources_and_citations(
    payload: Dict[str, Any],
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Return ``(sources, citations)`` extracted from a response payload."""

    sources: List[Dict[str, Any]] = []
    citations: List[Dict[str, Any]] = []

    for item in payload.get("output") or []:
        if not isinstance(item, dict):
            continue
        if item.get("type") == "web_search_call":
            action = item.get("action") or {}
            sources.extend(s for s in action.get("sources") or [] if isinstance(s, dict))
        for content in item.get("content") or []:
            if not isinstance(content, dict):
                continue
            for annotation in content.get("annotations") or []:
                if isinstance(annotation, dict) and annotation.get("url"):
                    citations.append(
                        {
                            "url": annotation["url"],
                            "title": annotation.get("title") or annotation.get("text"),
                        }
                    )

    normalized_sources = _unique_by_url(sources)
    from_sources = [
        {
            "url": source.get("url") or source.get("link"),
            "title": source.get("title") or source.get("source") or source.get("snippet"),
        }
        for source in normalized_sources
    ]
    return normalized_sources, _unique_by_url(citations + from_sources)


# ============================================================================
# OpenAI-backed oracle
# ============================================================================


class OpenAIRatingOracle:
    """Rating oracle backed by the OpenAI Responses API with web search."""

    def __init__(self, config: OracleConfig, client: OpenAI | None = None) -> None:
        if client is None:
            if not config.api_key:
                raise OracleError("OPENAI_API_KEY is not set; cannot initialise OpenAIRatingOracle")
            client = OpenAI(
                api_key=config.api_key,
                timeout=config.timeout_seconds,
                max_retries=0,
            )
        self._client = client
        self._config = config
        self._format = rating_json_schema()

    def rate(self, request: RatingRequest) -> OracleResponse:
        prompt = build_rating_prompt(request)

        try:
            response = self._client.responses.create(
                model=self._config.model,
                temperature=self._config.temperature,
                max_output_tokens=self._config.max_output_tokens,
                tools=[{"type": "web_search"}],
                tool_choice={"type": "web_search"},
                include=["web_search_call.action.sources"],
                input=[
                    {"role": "system", "content": SYSTEM_INSTRUCTION},
                    {"role": "user", "content": prompt},
                ],
                text={"format": self._format},
            )
        except OpenAIError as exc:
            raise OracleError(f"OpenAI request failed for {request.symbol}: {exc}") from exc

        payload = response.model_dump()
        status = payload.get("status")
        if status not in (None, "completed"):
            raise OracleError(f"OpenAI response status {status!r} for {request.symbol}")

        refusal = find_refusal(payload)
        if refusal is not None:
            raise OracleError(f"OpenAI refused to rate {request.symbol}: {refusal}")

        rating = parse_rating(extract_output_text(payload), expected_symbol=request.symbol)
        sources, citations = extract_sources_and_citations(payload)

        logger.debug(
            "OpenAIRatingOracle.rate: symbol=%s score=%s latent_rank=%.4f citations=%d",
            request.symbol,
            rating.score,
            rating.latent_rank,
            len(citations),
        )

        return OracleResponse(
            rating=rating,
            citations=tuple(citations),
            sources=tuple(sources),
            raw=payload,
        )
