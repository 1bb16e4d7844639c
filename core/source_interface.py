"""
Source Interface - Abstract Contract for All Data Sources

This module defines the abstract base class every data source adapter must
implement. The Aggregator only talks to SourceInterface, never to a concrete
feed, so adding a source never touches the aggregation logic.

Contract:
    name:       Unique identifier (lowercase, e.g. "binance", "coingecko")
    category:   SourceCategory (crypto, ecommerce, realestate)
    rate_limit: Advisory requests per minute. Declared for schedulers;
                the aggregator does not enforce it.
    fetch():    Async; returns the source's current list of RawRecords.

Failure Contract:
    fetch() raises SourceFetchError when the source cannot produce data
    (network error, unparseable payload, rate limit). The adapter does not
    retry; retry and backoff belong to whatever schedules aggregation.

Example:
    class MarketplaceSource(SourceInterface):
        name = "marketplace"
        category = SourceCategory.ECOMMERCE
        rate_limit = 60

        async def fetch(self):
            rows = await self._client.list_products()
            return [RawRecord(source=self.name, ...) for row in rows]
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from core.schemas import RawRecord, SourceCategory


class SourceInterface(ABC):
    """
    Abstract Base Class for Source Adapters

    Class Attributes:
        name: Unique source identifier (lowercase)
        category: Kind of market the source reports on
        rate_limit: Advisory requests per minute (not enforced)

    Abstract Methods:
        - fetch: Produce the source's current records
    """

    name: str
    """Unique source identifier (lowercase). Example: "binance", "coingecko" """

    category: SourceCategory = SourceCategory.CRYPTO

    rate_limit: int = 60
    """Advisory requests per minute"""

    @abstractmethod
    async def fetch(self) -> List[RawRecord]:
        """
        Fetch the source's current records.

        Returns:
            List[RawRecord]: Records in the source's own emission order.
                             Empty list if the source simply has no data.

        Raises:
            SourceFetchError: If the source cannot produce data

        Notes:
            - Each record's `source` should equal `self.name`
            - Prices may be in any currency; conversion happens later
        """
        ...

    def describe(self) -> Dict[str, Any]:
        """
        Summary used by listings such as the /sources endpoint.

        Example:
            >>> BinanceSource().describe()
            {'name': 'binance', 'category': 'crypto', 'rate_limit': 1200}
        """
        return {
            "name": self.name,
            "category": self.category.value,
            "rate_limit": self.rate_limit,
        }

    def __repr__(self) -> str:
        """String representation of the source."""
        return f"<{self.__class__.__name__}(name='{self.name}')>"
