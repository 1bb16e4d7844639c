"""
CoinGecko Source

Implements SourceInterface on top of the CoinGecko markets endpoint.
Prices are requested in USD, so records carry currency "USD".

Endpoints Used:
    - GET /api/v3/coins/markets?vs_currency=usd&order=market_cap_desc
"""

from typing import Any, Dict, List, Optional

from core.logging import get_logger
from core.schemas import RawRecord, SourceCategory
from core.source_interface import SourceInterface
from .api_client import CoinGeckoAPIClient


logger = get_logger(__name__)


class CoinGeckoSource(SourceInterface):
    """
    CoinGecko top-coins-by-market-cap source.

    Args:
        base_url: API base URL (defaults to settings.coingecko_base_url)
        per_page: Number of coins to request (defaults to settings.coingecko_per_page)
        timeout: Request timeout in seconds (defaults to settings.request_timeout)
    """

    name = "coingecko"
    category = SourceCategory.CRYPTO
    rate_limit = 50

    def __init__(
        self,
        base_url: Optional[str] = None,
        per_page: Optional[int] = None,
        timeout: Optional[float] = None
    ):
        # Import settings here to avoid circular imports
        from core.config import settings

        self.base_url = base_url or settings.coingecko_base_url
        self.per_page = per_page or settings.coingecko_per_page
        self.timeout = timeout if timeout is not None else settings.request_timeout

    async def fetch(self) -> List[RawRecord]:
        async with CoinGeckoAPIClient(self.base_url, timeout=self.timeout) as client:
            coins = await client.get_markets(vs_currency="usd", per_page=self.per_page)

        records = [r for r in (parse_coin(coin, source=self.name) for coin in coins) if r is not None]

        skipped = len(coins) - len(records)
        if skipped:
            logger.warning(f"Skipped {skipped} CoinGecko coin(s) without a usable price")
        logger.info(f"CoinGecko: {len(records)} coin(s)")
        return records


def parse_coin(coin: Dict[str, Any], source: str = "coingecko") -> Optional[RawRecord]:
    """
    Convert one markets entry into a RawRecord.

    Returns:
        RawRecord, or None if the entry has no id/name or no valid price
    """
    if not isinstance(coin, dict) or not coin.get("id") or not coin.get("name"):
        return None
    if coin.get("current_price") is None:
        return None

    symbol = coin.get("symbol")
    try:
        return RawRecord(
            source=source,
            external_id=str(coin["id"]),
            name=str(coin["name"]),
            symbol=str(symbol).upper() if symbol else None,
            price=float(coin["current_price"]),
            currency="USD",
            volume=_optional_float(coin.get("total_volume")),
            market_cap=_optional_float(coin.get("market_cap")),
            metadata={"change_24h": coin.get("price_change_percentage_24h")},
        )
    except (TypeError, ValueError) as e:
        logger.debug(f"Malformed CoinGecko coin {coin.get('id')}: {e}")
        return None


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)
