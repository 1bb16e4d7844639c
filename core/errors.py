"""
Aggregator Error Types

All errors raised by the aggregation core derive from AggregatorError.

Taxonomy:
    - SourceFetchError: A source could not produce data (network failure,
      unparseable payload, rate limit). Recovered by the Aggregator: the
      source contributes an empty list for that cycle.
    - RecordValidationError: A record returned by a source failed schema
      validation. Recovered by the Aggregator: the record is dropped.
    - NonFiniteAggregateError: Folding a match group produced a value that
      does not fit in a float (e.g. a huge price over a tiny rate). Recovered
      by the Aggregator: the group is dropped from the cycle.

None of these ever escapes Aggregator.aggregate(); all are surfaced through
the AggregationReport returned by Aggregator.aggregate_with_report().
"""

from enum import Enum
from typing import Optional


class FetchFailureReason(str, Enum):
    """Why a source fetch failed."""

    NETWORK = "network"
    PARSE = "parse"
    RATE_LIMIT = "rate_limit"
    UNKNOWN = "unknown"


class AggregatorError(Exception):
    """Base class for aggregation errors."""


class SourceFetchError(AggregatorError):
    """
    Raised by a source when it cannot produce data.

    Network, parse and rate-limit causes are one exception kind; `reason`
    only records which one it was.

    Example:
        >>> raise SourceFetchError("binance", "HTTP 503", reason=FetchFailureReason.NETWORK)
    """

    def __init__(
        self,
        source: str,
        message: str,
        reason: FetchFailureReason = FetchFailureReason.NETWORK
    ):
        self.source = source
        self.reason = reason
        self.message = message
        super().__init__(f"[{source}] {reason.value}: {message}")


class RecordValidationError(AggregatorError):
    """Raised when a record returned by a source is malformed."""

    def __init__(self, source: str, message: str, external_id: Optional[str] = None):
        self.source = source
        self.external_id = external_id
        self.message = message
        where = f"{source}/{external_id}" if external_id else source
        super().__init__(f"Invalid record from {where}: {message}")


class NonFiniteAggregateError(AggregatorError):
    """Raised when a match group folds to an infinite or NaN value."""

    def __init__(self, key: str, field: str, message: str):
        self.key = key
        self.field = field
        self.message = message
        super().__init__(f"Cannot fold '{key}': {field} {message}")
