"""
Normalized Data Schemas

This module defines Pydantic models for every record the aggregator handles.

Key Principle:
    Regardless of which source a record comes from (Binance, CoinGecko, a
    marketplace feed, ...), it enters the core as a RawRecord and leaves it as
    a CanonicalAsset. Both models are immutable: each aggregation cycle builds
    fresh objects instead of mutating earlier ones.

Models:
    - SourceCategory: Closed set of source kinds (crypto, ecommerce, realestate)
    - RawRecord: Unnormalized price record produced by one source
    - CanonicalAsset: Deduplicated, USD-normalized multi-source record
    - SourceFailure / RecordRejection / DroppedGroup: Problems observed
      during a cycle
    - FetchOutcome: Result of one source fetch (success or failure variant)
    - AggregationReport: Assets plus the warnings gathered while building them
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.errors import FetchFailureReason


# ============================================
# Source Category
# ============================================

class SourceCategory(str, Enum):
    """Kind of market a source reports on."""

    CRYPTO = "crypto"
    ECOMMERCE = "ecommerce"
    REALESTATE = "realestate"


# ============================================
# Raw Record Schema
# ============================================

class RawRecord(BaseModel):
    """
    Raw Asset/Price Record

    One observation of an asset as reported by a single source, before
    matching and currency normalization. Records are produced per aggregation
    cycle and discarded once folded into a CanonicalAsset.

    Attributes:
        source: Name of the source that produced the record
        external_id: Identifier of the asset in the source's own system
        name: Display name used for fuzzy matching
        symbol: Ticker or short code, if the source has one
        price: Price in `currency` (non-negative, finite)
        currency: ISO-like currency code, upper-cased (default "USD")
        volume: Traded volume, if reported
        market_cap: Market capitalization, if reported
        metadata: Free-form source-specific values

    Example:
        >>> record = RawRecord(
        ...     source="coingecko",
        ...     external_id="bitcoin",
        ...     name="Bitcoin",
        ...     symbol="BTC",
        ...     price=43250.5,
        ...     currency="usd",
        ...     volume=28_500_000_000,
        ... )
        >>> record.currency
        'USD'
    """

    source: str = Field(
        ...,
        min_length=1,
        description="Name of the source that produced this record",
        examples=["binance", "coingecko"]
    )

    external_id: str = Field(
        ...,
        description="Asset identifier in the source's own system",
        examples=["BTCUSDT", "bitcoin"]
    )

    name: str = Field(
        ...,
        description="Display name used for matching",
        examples=["Bitcoin", "Binance Coin (BNB)"]
    )

    symbol: Optional[str] = Field(
        None,
        description="Ticker or short code (optional)",
        examples=["BTC", "ETH"]
    )

    price: float = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Price expressed in `currency`"
    )

    currency: str = Field(
        "USD",
        min_length=1,
        description="Currency code of `price`"
    )

    volume: Optional[float] = Field(
        None,
        ge=0,
        allow_inf_nan=False,
        description="Traded volume (optional)"
    )

    market_cap: Optional[float] = Field(
        None,
        ge=0,
        allow_inf_nan=False,
        description="Market capitalization (optional)"
    )

    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form source-specific values"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Ensure currency code is uppercase"""
        return v.strip().upper()


# ============================================
# Canonical Asset Schema
# ============================================

class CanonicalAsset(BaseModel):
    """
    Canonical Aggregated Asset

    One deduplicated asset built from a match group of RawRecords. The whole
    set is recomputed every cycle.

    Attributes:
        id: Slug derived from the group's seed name (deterministic)
        name: Seed record's original name
        symbol: Seed record's symbol ("" when it had none)
        price: Arithmetic mean of member prices converted to USD
        change_24h: Always 0.0 (historical deltas are computed elsewhere)
        volume: Sum of member volumes (missing treated as 0)
        market_cap: Sum of member market caps (missing treated as 0)
        sources: Distinct contributing source names, first contribution first
        last_updated: Wall-clock time of the aggregation cycle (UTC)
    """

    id: str = Field(..., description="Slug identifier", examples=["binance-coin-bnb"])
    name: str = Field(..., description="Display name of the seed record")
    symbol: str = Field("", description="Ticker of the seed record")
    price: float = Field(..., ge=0, allow_inf_nan=False, description="Average price in USD")
    change_24h: float = Field(0.0, description="24h change (not computed by the aggregator)")
    volume: float = Field(0.0, ge=0, description="Total volume across sources")
    market_cap: float = Field(0.0, ge=0, description="Total market cap across sources")
    sources: List[str] = Field(..., min_length=1, description="Contributing source names")
    last_updated: datetime = Field(..., description="Aggregation time in UTC")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "bitcoin",
                "name": "Bitcoin",
                "symbol": "BTC",
                "price": 43250.5,
                "change_24h": 0.0,
                "volume": 28500000000.0,
                "market_cap": 845000000000.0,
                "sources": ["binance", "coingecko"],
                "last_updated": "2024-01-01T12:00:00Z"
            }
        }
    )


# ============================================
# Cycle Diagnostics
# ============================================

class SourceFailure(BaseModel):
    """A source whose fetch failed during a cycle."""

    source: str
    reason: FetchFailureReason
    message: str


class RecordRejection(BaseModel):
    """A record dropped because it failed validation."""

    source: str
    external_id: Optional[str] = None
    message: str


class DroppedGroup(BaseModel):
    """A match group left out of a cycle because it folded to a non-finite value."""

    key: str
    sources: List[str] = Field(default_factory=list)
    message: str


class FetchOutcome(BaseModel):
    """
    Result of fetching one source.

    Exactly one of the two variants holds: `failure` is None and `records`
    carries the source's output, or `failure` is set and `records` is empty.
    """

    source: str
    records: List[RawRecord] = Field(default_factory=list)
    rejections: List[RecordRejection] = Field(default_factory=list)
    failure: Optional[SourceFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class AggregationReport(BaseModel):
    """
    Aggregation result with its warnings channel.

    Callers that only need the assets use Aggregator.aggregate(); callers that
    need to see partial failures use Aggregator.aggregate_with_report().
    """

    assets: List[CanonicalAsset] = Field(default_factory=list)
    failures: List[SourceFailure] = Field(default_factory=list)
    rejections: List[RecordRejection] = Field(default_factory=list)
    dropped_groups: List[DroppedGroup] = Field(
        default_factory=list,
        description="Match groups whose price, volume or market cap overflowed"
    )
    unknown_currencies: List[str] = Field(
        default_factory=list,
        description="Currencies converted at the default rate of 1"
    )
    record_count: int = Field(0, ge=0, description="Records that entered matching")
    started_at: datetime
    finished_at: datetime

    @property
    def degraded(self) -> bool:
        """True when any source failed or any record or group was dropped."""
        return bool(self.failures or self.rejections or self.dropped_groups)
