"""Toprank – Strict schema for rating oracle responses.

The oracle is asked for a JSON object matching :class:`OracleRating`.
Validation is strict: wrong types, missing keys and unknown keys are all
rejected rather than coerced, and a rejection is reported as
:class:`~toprank.core.errors.SchemaViolation`.

Numeric ranges are advertised to the oracle in the JSON schema but are
not enforced here; out-of-range values are clamped afterwards by the
scorer.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from toprank.core.errors import SchemaViolation


BucketLabel = Literal["buy", "hold", "sell"]


class BucketChange(BaseModel):
    """Oracle's description of a bucket transition versus the previous run."""

    model_config = ConfigDict(extra="forbid", strict=True)

    changed: bool
    previous_bucket: Optional[BucketLabel]
    current_bucket: BucketLabel
    explanation: Optional[str]


class OracleRating(BaseModel):
    """Rating payload returned by the oracle for a single instrument."""

    model_config = ConfigDict(extra="forbid", strict=True)

    symbol: str
    date: str
    score: int = Field(json_schema_extra={"minimum": -5, "maximum": 5})
    latent_rank: float = Field(json_schema_extra={"minimum": 0, "maximum": 1})
    confidence: float = Field(json_schema_extra={"minimum": 0, "maximum": 1})
    rationale: str
    risks: List[str] = Field(min_length=2, max_length=6)
    bucket_change: BucketChange


def _add_additional_properties_false(schema: Dict[str, Any]) -> None:
    """Recursively add ``additionalProperties: false`` to object schemas."""

    if schema.get("type") == "object":
        schema["additionalProperties"] = False

    for prop in schema.get("properties", {}).values():
        _add_additional_properties_false(prop)

    if isinstance(schema.get("items"), dict):
        _add_additional_properties_false(schema["items"])

    for definition in schema.get("$defs", {}).values():
        _add_additional_properties_false(definition)

    for key in ("anyOf", "oneOf", "allOf"):
        for item in schema.get(key, []):
            _add_additional_properties_false(item)


def rating_json_schema(name: str = "stock_rating") -> Dict[str, Any]:
    """Return the structured-output format block for the oracle request."""

    schema = copy.deepcopy(OracleRating.model_json_schema())
    _add_additional_properties_false(schema)
    return {
        "type": "json_schema",
        "name": name,
        "strict": True,
        "schema": schema,
    }


def parse_rating(output_text: str, expected_symbol: str | None = None) -> OracleRating:
    """Parse and strictly validate oracle output text.

    Raises:
        SchemaViolation: If the text is not JSON, does not match
            :class:`OracleRating`, or names a different symbol.
    """

    if not output_text or not output_text.strip():
        raise SchemaViolation("Oracle response missing output text")

    try:
        payload = json.loads(output_text)
    except json.JSONDecodeError as exc:
        raise SchemaViolation(f"Oracle response is not valid JSON: {exc}") from exc

    try:
        rating = OracleRating.model_validate(payload)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise SchemaViolation(f"Oracle response failed validation: {errors}") from exc

    if expected_symbol is not None and rating.symbol.strip().upper() != expected_symbol.upper():
        raise SchemaViolation(
            f"Oracle response symbol {rating.symbol!r} does not match requested {expected_symbol!r}"
        )

    return rating
