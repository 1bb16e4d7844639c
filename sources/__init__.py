"""
Source Adapters Package

Each external feed has its own subpackage:
- __init__.py: Source class implementing SourceInterface
- api_client.py: REST client for the feed

Adding a feed means adding a subpackage and an entry in SOURCE_REGISTRY;
the aggregator itself does not change.
"""

from typing import Dict, List, Sequence, Type

from core.source_interface import SourceInterface
from sources.binance import BinanceSource
from sources.coingecko import CoinGeckoSource


SOURCE_REGISTRY: Dict[str, Type[SourceInterface]] = {
    "binance": BinanceSource,
    "coingecko": CoinGeckoSource,
}


def build_sources(names: Sequence[str], config=None) -> List[SourceInterface]:
    """
    Instantiate sources by name, in the given order.

    Args:
        names: Source names (case-insensitive)
        config: Settings used for URLs and timeouts (defaults to global settings)

    Raises:
        ValueError: If a name is not in SOURCE_REGISTRY

    Example:
        >>> [s.name for s in build_sources(["coingecko", "binance"])]
        ['coingecko', 'binance']
    """
    from core.config import settings

    config = config or settings
    sources: List[SourceInterface] = []

    for name in names:
        key = name.strip().lower()
        if key not in SOURCE_REGISTRY:
            available = ", ".join(SOURCE_REGISTRY)
            raise ValueError(f"Source '{name}' is not supported. Available sources: {available}")

        if key == "binance":
            sources.append(BinanceSource(
                base_url=config.binance_base_url,
                timeout=config.request_timeout
            ))
        elif key == "coingecko":
            sources.append(CoinGeckoSource(
                base_url=config.coingecko_base_url,
                per_page=config.coingecko_per_page,
                timeout=config.request_timeout
            ))

    return sources


__all__ = ["SOURCE_REGISTRY", "build_sources", "BinanceSource", "CoinGeckoSource"]
