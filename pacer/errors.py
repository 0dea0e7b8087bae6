"""Error types for pacer flows."""

from __future__ import annotations


class PacerError(RuntimeError):
    """Base error for pacer operations."""


class DurationError(PacerError, ValueError):
    """A duration string could not be parsed."""


class PredicateError(PacerError, ValueError):
    """A rule match document is malformed."""


class RulebookError(PacerError, ValueError):
    """A rulebook failed validation; the previous snapshot stays installed."""


class SourceError(PacerError):
    """The upstream source failed or returned an invalid envelope."""
