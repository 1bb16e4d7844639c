"""
Aggregator - Multi-Source Fetch, Match and Fold

The Aggregator is the central coordinator of the core. Each cycle it:

    1. Snapshots the registered sources and the exchange rate table
    2. Fetches every source concurrently (one task per source)
    3. Clusters the flattened records with find_matches (threshold 80)
    4. Folds each match group into one CanonicalAsset:
         - price      = mean of member prices converted to USD
         - volume     = sum of member volumes (missing -> 0)
         - market_cap = sum of member market caps (missing -> 0)
         - sources    = distinct contributing source names
         - id         = slug of the seed's name
         - change_24h = 0 (historical deltas live elsewhere)

Failure Isolation:
    A source whose fetch raises contributes an empty list for the cycle. The
    failure is logged and recorded in the AggregationReport; it never
    propagates to the caller and never cancels sibling fetches.

    A match group whose price, volume or market cap does not fit in a float
    is dropped the same way and listed in the report.

Ordering:
    Records are concatenated in source registration order, then in each
    source's emission order, regardless of which fetch finished first. For a
    fixed registration sequence the output is deterministic.

Example Usage:
    aggregator = Aggregator()
    aggregator.register_source(BinanceSource())
    aggregator.register_source(CoinGeckoSource())
    aggregator.update_exchange_rates({"EUR": 0.92})

    assets = await aggregator.aggregate()

    # Deadlines are the caller's concern:
    assets = await asyncio.wait_for(aggregator.aggregate(), timeout=30)
"""

import asyncio
import math
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from pydantic import ValidationError

from core.errors import (
    FetchFailureReason,
    NonFiniteAggregateError,
    RecordValidationError,
    SourceFetchError,
)
from core.exchange_rates import ExchangeRateTable
from core.logging import get_logger, log_source_failure
from core.matcher import DEFAULT_MATCH_THRESHOLD, MatchGroup, find_matches, slugify
from core.schemas import (
    AggregationReport,
    CanonicalAsset,
    DroppedGroup,
    FetchOutcome,
    RawRecord,
    RecordRejection,
    SourceFailure,
)
from core.source_interface import SourceInterface
from core.utils.time import current_utc_datetime


logger = get_logger(__name__)


class Aggregator:
    """
    Aggregation service over a set of registered sources.

    Instances are created and owned by the caller; there is no global
    instance. Several differently configured aggregators can run side by side.

    Attributes:
        rates: The live ExchangeRateTable (each cycle works on a snapshot)

    Example:
        >>> aggregator = Aggregator(rates={"EUR": 0.9})
        >>> aggregator.register_source(MySource())
        >>> report = await aggregator.aggregate_with_report()
        >>> report.assets[0].price
    """

    def __init__(
        self,
        sources: Optional[Sequence[SourceInterface]] = None,
        rates: Optional[Mapping[str, float]] = None,
        clock: Callable[[], datetime] = current_utc_datetime
    ):
        """
        Args:
            sources: Sources to register, in order
            rates: Initial exchange rates merged over the {"USD": 1} default
            clock: Returns the cycle timestamp (UTC); injectable for tests
        """
        self._sources: List[SourceInterface] = []
        self._sources_lock = threading.Lock()
        self.rates = ExchangeRateTable(rates)
        self._clock = clock

        for source in sources or ():
            self.register_source(source)

    # ============================================
    # Registry
    # ============================================

    def register_source(self, source: SourceInterface) -> None:
        """
        Register a source. Registration order fixes output order.

        Registering the same name twice is allowed and makes that source
        contribute twice per cycle; a warning is logged.
        """
        with self._sources_lock:
            if any(existing.name == source.name for existing in self._sources):
                logger.warning(
                    f"Source '{source.name}' is already registered; "
                    f"its records will be counted once per registration"
                )
            self._sources.append(source)

        logger.info(f"Registered source: {source.name} ({source.category.value}, {source.rate_limit} req/min)")

    def list_sources(self) -> List[SourceInterface]:
        """Registered sources in registration order (a copy)."""
        with self._sources_lock:
            return list(self._sources)

    def update_exchange_rates(self, rates: Mapping[str, float]) -> None:
        """
        Merge exchange rates (foreign units per USD) into the rate table.

        Raises:
            ValueError: If any rate is not a finite number > 0
        """
        self.rates.update(rates)
        logger.info(f"Exchange rates updated: {', '.join(sorted(rates)) or 'none'}")

    def exchange_rates(self) -> Dict[str, float]:
        return self.rates.as_dict()

    # ============================================
    # Fetch Phase
    # ============================================

    async def fetch_all_sources(self) -> List[RawRecord]:
        """
        Fetch every registered source concurrently and flatten the results.

        Never raises because of a source: failed sources contribute nothing.

        Returns:
            List[RawRecord]: Records in registration order, then emission order
        """
        outcomes = await self.fetch_all_sources_detailed()
        return _flatten(outcomes)

    async def fetch_all_sources_detailed(self) -> List[FetchOutcome]:
        """
        Fetch every registered source concurrently, one outcome per source.

        Returns:
            List[FetchOutcome]: One entry per registered source, in
                                registration order
        """
        return await self._fetch(self.list_sources())

    async def _fetch(self, sources: Sequence[SourceInterface]) -> List[FetchOutcome]:
        if not sources:
            logger.debug("No sources registered, nothing to fetch")
            return []

        # _fetch_one never raises (except on cancellation), so the group
        # always joins every task.
        async with asyncio.TaskGroup() as group:
            tasks = [
                group.create_task(self._fetch_one(source), name=f"fetch_{source.name}")
                for source in sources
            ]

        outcomes = [task.result() for task in tasks]

        failed = [o.source for o in outcomes if not o.ok]
        total = sum(len(o.records) for o in outcomes)
        logger.info(
            f"Fetched {total} record(s) from {len(outcomes) - len(failed)}/{len(outcomes)} source(s)"
            + (f" | failed: {', '.join(failed)}" if failed else "")
        )
        return outcomes

    async def _fetch_one(self, source: SourceInterface) -> FetchOutcome:
        try:
            raw = await source.fetch()
            records, rejections = _validate_records(source.name, raw)
        except SourceFetchError as e:
            log_source_failure(source.name, e.reason.value, e.message)
            return FetchOutcome(
                source=source.name,
                failure=SourceFailure(source=source.name, reason=e.reason, message=e.message)
            )
        except Exception as e:
            log_source_failure(source.name, FetchFailureReason.UNKNOWN.value, repr(e), unexpected=True)
            return FetchOutcome(
                source=source.name,
                failure=SourceFailure(
                    source=source.name,
                    reason=FetchFailureReason.UNKNOWN,
                    message=repr(e)
                )
            )

        logger.debug(f"{source.name}: {len(records)} record(s), {len(rejections)} rejected")
        return FetchOutcome(source=source.name, records=records, rejections=rejections)

    # ============================================
    # Aggregation Pipeline
    # ============================================

    async def aggregate(self) -> List[CanonicalAsset]:
        """
        Run one full cycle and return the canonical assets.

        Returns:
            List[CanonicalAsset]: One asset per match group, in discovery
                                  order. Empty if no source produced data.
        """
        report = await self.aggregate_with_report()
        return report.assets

    async def aggregate_with_report(self) -> AggregationReport:
        """
        Run one full cycle and return assets together with its warnings.

        Returns:
            AggregationReport: assets, source failures, rejected records and
                               currencies converted at the default rate
        """
        started_at = self._clock()

        # Snapshot shared state so concurrent register/update calls cannot
        # change this cycle halfway through.
        sources = self.list_sources()
        rates = self.rates.snapshot()

        outcomes = await self._fetch(sources)
        records = _flatten(outcomes)

        groups = find_matches(records, threshold=DEFAULT_MATCH_THRESHOLD)

        now = self._clock()
        unknown: Set[str] = set()
        assets: List[CanonicalAsset] = []
        dropped: List[DroppedGroup] = []
        for group in groups:
            try:
                assets.append(fold_group(group, rates, now, unknown))
            except NonFiniteAggregateError as e:
                logger.warning(f"Dropping match group: {e}")
                dropped.append(DroppedGroup(
                    key=group.key,
                    sources=list(dict.fromkeys(r.source for r in group.records)),
                    message=str(e)
                ))

        if unknown:
            logger.warning(
                f"No exchange rate for {', '.join(sorted(unknown))}; "
                f"prices passed through unconverted"
            )

        logger.info(f"Aggregated {len(records)} record(s) into {len(assets)} asset(s)")

        return AggregationReport(
            assets=assets,
            failures=[o.failure for o in outcomes if o.failure is not None],
            rejections=[r for o in outcomes for r in o.rejections],
            dropped_groups=dropped,
            unknown_currencies=sorted(unknown),
            record_count=len(records),
            started_at=started_at,
            finished_at=now,
        )

    def __repr__(self) -> str:
        return f"<Aggregator(sources={[s.name for s in self.list_sources()]})>"

    def __len__(self) -> int:
        return len(self.list_sources())


# ============================================
# Folding
# ============================================

def fold_group(
    group: MatchGroup,
    rates: ExchangeRateTable,
    now: datetime,
    unknown_currencies: Optional[Set[str]] = None
) -> CanonicalAsset:
    """
    Fold one match group into a CanonicalAsset.

    Args:
        group: Match group to fold (non-empty)
        rates: Rate table used for USD conversion
        now: Timestamp stored as last_updated
        unknown_currencies: If given, collects currencies missing from `rates`

    Returns:
        CanonicalAsset: The aggregated asset

    Raises:
        NonFiniteAggregateError: If a converted price, the volume total or the
                                 market cap total is not a finite float
    """
    prices = []
    for record in group.records:
        if unknown_currencies is not None and not rates.has_rate(record.currency):
            unknown_currencies.add(record.currency)
        price = rates.to_usd(record.price, record.currency)
        if not math.isfinite(price):
            raise NonFiniteAggregateError(
                group.key,
                "price",
                f"{record.price} {record.currency} from {record.source} converts to {price} USD"
            )
        prices.append(price)

    # divide first so the running sum cannot overflow
    mean_price = sum(price / len(prices) for price in prices)

    volume = sum(record.volume or 0.0 for record in group.records)
    market_cap = sum(record.market_cap or 0.0 for record in group.records)
    for field, total in (("volume", volume), ("market_cap", market_cap)):
        if not math.isfinite(total):
            raise NonFiniteAggregateError(group.key, field, "total overflows a float")

    # dict preserves first-contribution order
    sources = list(dict.fromkeys(record.source for record in group.records))

    return CanonicalAsset(
        id=slugify(group.key),
        name=group.key,
        symbol=group.seed.symbol or "",
        price=mean_price,
        change_24h=0.0,
        volume=volume,
        market_cap=market_cap,
        sources=sources,
        last_updated=now,
    )


def _flatten(outcomes: Sequence[FetchOutcome]) -> List[RawRecord]:
    return [record for outcome in outcomes for record in outcome.records]


def _validate_records(source: str, raw: Any) -> Tuple[List[RawRecord], List[RecordRejection]]:
    """
    Coerce a source's output to RawRecords, dropping invalid entries.

    RawRecord instances pass through; mappings are validated against the
    schema. Anything that fails becomes a RecordRejection.

    Raises:
        SourceFetchError: If the output is not a list of records at all
    """
    if raw is None:
        raw = []
    if not isinstance(raw, (list, tuple)):
        raise SourceFetchError(
            source,
            f"fetch() returned {type(raw).__name__}, expected a list of records",
            reason=FetchFailureReason.PARSE
        )

    records: List[RawRecord] = []
    rejections: List[RecordRejection] = []

    for item in raw:
        if isinstance(item, RawRecord):
            records.append(item)
            continue

        external_id = item.get("external_id") if isinstance(item, Mapping) else None
        if external_id is not None:
            external_id = str(external_id)
        try:
            records.append(RawRecord.model_validate(item))
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or 'record'}: {err['msg']}"
                for err in e.errors()
            )
            error = RecordValidationError(source, details, external_id)
            logger.warning(str(error))
            rejections.append(
                RecordRejection(source=source, external_id=external_id, message=error.message)
            )

    return records, rejections


# ============================================
# Factory
# ============================================

def create_aggregator(config=None) -> Aggregator:
    """
    Build an Aggregator with the sources and rates named in settings.

    Args:
        config: Settings instance (defaults to core.config.settings)

    Returns:
        Aggregator: Ready to aggregate; owned by the caller

    Example:
        >>> aggregator = create_aggregator()
        >>> [s.name for s in aggregator.list_sources()]
        ['binance', 'coingecko']
    """
    # Import here to avoid circular imports
    # Each source module imports from core, so we can't import at module level
    from core.config import settings
    from sources import build_sources

    config = config or settings
    aggregator = Aggregator(
        sources=build_sources(config.sources_list, config),
        rates=config.exchange_rates_map,
    )
    logger.info(f"Aggregator created with {len(aggregator)} source(s)")
    return aggregator
