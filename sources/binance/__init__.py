"""
Binance Source

Implements SourceInterface on top of the Binance spot 24h ticker endpoint.

Only USDT-quoted pairs are kept; the base asset becomes both the record name
and symbol ("BTCUSDT" -> "BTC"), and USDT prices are treated as USD.

Endpoints Used:
    - GET /api/v3/ticker/24hr - 24h rolling statistics for all symbols

Structure:
    sources/binance/
    ├── __init__.py          # This file (BinanceSource class)
    └── api_client.py        # REST API client with aiohttp
"""

from typing import Any, Dict, List, Optional

from core.logging import get_logger
from core.schemas import RawRecord, SourceCategory
from core.source_interface import SourceInterface
from core.utils.time import to_utc_datetime
from .api_client import BinanceAPIClient


logger = get_logger(__name__)

QUOTE_ASSET = "USDT"


class BinanceSource(SourceInterface):
    """
    Binance spot market source.

    Example:
        >>> source = BinanceSource()
        >>> records = await source.fetch()
        >>> records[0].source, records[0].currency
        ('binance', 'USD')
    """

    name = "binance"
    category = SourceCategory.CRYPTO
    rate_limit = 1200

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        # Import settings here to avoid circular imports
        from core.config import settings

        self.base_url = base_url or settings.binance_base_url
        self.timeout = timeout if timeout is not None else settings.request_timeout

    async def fetch(self) -> List[RawRecord]:
        """
        Fetch USDT-quoted tickers as RawRecords.

        Raises:
            SourceFetchError: If the ticker request fails
        """
        async with BinanceAPIClient(self.base_url, timeout=self.timeout) as client:
            tickers = await client.get_ticker_24hr()

        records = []
        skipped = 0
        for ticker in tickers:
            record = parse_ticker(ticker, source=self.name)
            if record is None:
                skipped += 1
                continue
            records.append(record)

        if skipped:
            logger.warning(f"Skipped {skipped} malformed Binance ticker(s)")
        logger.info(f"Binance: {len(records)} {QUOTE_ASSET} pair(s) out of {len(tickers)} ticker(s)")
        return records


def parse_ticker(ticker: Dict[str, Any], source: str = "binance") -> Optional[RawRecord]:
    """
    Convert one 24h ticker into a RawRecord.

    Returns:
        RawRecord, or None when the ticker is not a USDT pair or is malformed
    """
    symbol = ticker.get("symbol") if isinstance(ticker, dict) else None
    if not isinstance(symbol, str) or not symbol.endswith(QUOTE_ASSET):
        return None

    base = symbol[: -len(QUOTE_ASSET)]
    if not base:
        return None

    try:
        metadata: Dict[str, Any] = {"change_24h": float(ticker.get("priceChangePercent") or 0)}
        if ticker.get("closeTime") is not None:
            metadata["close_time"] = to_utc_datetime(int(ticker["closeTime"])).isoformat()

        return RawRecord(
            source=source,
            external_id=symbol,
            name=base,
            symbol=base,
            price=float(ticker["lastPrice"]),
            currency="USD",
            volume=float(ticker["volume"]) if ticker.get("volume") is not None else None,
            metadata=metadata,
        )
    except (KeyError, TypeError, ValueError) as e:
        # pydantic's ValidationError is a ValueError subclass
        logger.debug(f"Malformed Binance ticker {symbol}: {e}")
        return None
