"""
Toprank: Error taxonomy

This module defines the exception hierarchy shared by all pipeline
stages. The hierarchy encodes how a failure is handled:

- :class:`TransientFetchError` and :class:`SchemaViolation` are
  recoverable. The stage that catches them substitutes a neutral value
  (fallback score, zero benchmark return) and records an issue.
- :class:`InvariantViolation` and :class:`PersistenceError` are fatal.
  They halt the remaining stages of the run.

Thread safety: Thread-safe (exception classes only)
"""

from __future__ import annotations

from typing import Sequence


class ToprankError(Exception):
    """Base class for all Toprank errors."""


class TransientFetchError(ToprankError):
    """Raised when an external collaborator (oracle, price feed) fails."""


class SchemaViolation(ToprankError):
    """Raised when an oracle response does not match the strict schema."""


class InvariantViolation(ToprankError):
    """Raised when a run-level invariant does not hold.

    Examples are a portfolio whose size differs from the configured
    number of holdings, or an empty universe after every fallback.
    """


class ConfigMismatchError(InvariantViolation):
    """Raised when a persisted strategy version differs from the code.

    Attributes:
        slug: Strategy slug whose persisted row drifted.
        fields: Names of the fields that differ.
    """

    def __init__(self, slug: str, fields: Sequence[str]) -> None:
        self.slug = slug
        self.fields = list(fields)
        super().__init__(
            f"Strategy config mismatch for {slug!r} on fields: {', '.join(self.fields)}. "
            "Bump the app or model version instead of editing an existing strategy."
        )


class PersistenceError(ToprankError):
    """Raised when a write to (or read from) the persistent store fails."""


RECOVERABLE_ERRORS = (TransientFetchError, SchemaViolation)
FATAL_ERRORS = (InvariantViolation, PersistenceError)
