"""Toprank – Constituent scoring package.

- :mod:`toprank.scoring.types` – :class:`ScoreRecord`, buckets and clamping.
- :mod:`toprank.scoring.schema` – strict oracle response schema.
- :mod:`toprank.scoring.oracle` – rating oracle protocol and OpenAI client.
- :mod:`toprank.scoring.scorer` – bounded worker pool with neutral fallback.
- :mod:`toprank.scoring.storage` – write-once score persistence.
"""

from .types import PreviousRating, ScoreRecord, bucket_from_score, clamp_score, clamp_unit, fallback_record
from .oracle import OpenAIRatingOracle, OracleError, OracleResponse, RatingOracle
from .prompt import RatingRequest
from .scorer import ConstituentScorer
from .storage import ScoreStorage, ScoreStorageLike, previous_ratings

__all__ = [
    "ConstituentScorer",
    "OpenAIRatingOracle",
    "OracleError",
    "OracleResponse",
    "PreviousRating",
    "RatingOracle",
    "RatingRequest",
    "ScoreRecord",
    "ScoreStorage",
    "ScoreStorageLike",
    "bucket_from_score",
    "clamp_score",
    "clamp_unit",
    "fallback_record",
    "previous_ratings",
]
