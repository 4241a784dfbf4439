"""Toprank – Rating prompt template."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from toprank.scoring.types import PreviousRating


SYSTEM_INSTRUCTION = "Use exactly one web_search call. Output only JSON matching the schema."

RATING_PROMPT_TEMPLATE = """You are an equity research analyst rating a Nasdaq-100 constituent for a
weekly, forward-looking ranking. Use one web search for the latest news,
earnings and guidance, then rate the stock's attractiveness over the next week.

Stock: {symbol} ({company_name})
As-of date: {run_date}
Previous score: {previous_score}
Previous bucket: {previous_bucket}

Rules:
- score is an integer from -5 (strong sell) to 5 (strong buy).
- latent_rank is a continuous value in [0, 1] that orders this stock relative
  to the rest of the Nasdaq-100 more finely than score; higher is better.
- confidence is in [0, 1]; be conservative when information is sparse.
- rationale is one sentence citing concrete facts.
- risks lists 2 to 6 short key risks.
- bucket_change compares the bucket implied by your score (buy if score >= 2,
  sell if score <= -2, otherwise hold) with the previous bucket and explains
  any change; explanation is null when unchanged.
- symbol and date echo the stock and as-of date above.
"""


@dataclass(frozen=True)
class RatingRequest:
    """Everything the oracle needs to rate one instrument."""

    symbol: str
    company_name: str
    run_date: date
    previous: PreviousRating = PreviousRating()


def build_rating_prompt(request: RatingRequest) -> str:
    """Render the rating prompt for ``request``."""

    previous = request.previous
    return RATING_PROMPT_TEMPLATE.format(
        symbol=request.symbol,
        company_name=request.company_name or request.symbol,
        run_date=request.run_date.isoformat(),
        previous_score="N/A (first run)" if previous.score is None else previous.score,
        previous_bucket="N/A (first run)" if previous.bucket is None else previous.bucket,
    )
