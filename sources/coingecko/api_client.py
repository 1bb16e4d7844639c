"""
CoinGecko REST API Client

Thin async client for the public CoinGecko v3 API, built on httpx.

API Documentation:
    https://docs.coingecko.com/reference/coins-markets

Rate Limits:
    The free tier allows roughly 30-50 calls per minute and answers HTTP 429
    beyond that. This client reports 429 as a rate-limit fetch failure and
    does not retry.

Usage:
    async with CoinGeckoAPIClient() as client:
        coins = await client.get_markets(per_page=100)
"""

import time
from typing import Any, Dict, List, Optional

import httpx

from core.errors import FetchFailureReason, SourceFetchError
from core.logging import get_logger, log_api_request, log_api_response


class CoinGeckoAPIClient:
    """
    Async HTTP client for the CoinGecko markets endpoint.

    Example:
        >>> async with CoinGeckoAPIClient() as client:
        ...     coins = await client.get_markets(per_page=10)
    """

    SOURCE_NAME = "coingecko"
    BASE_URL = "https://api.coingecko.com"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger(__name__)
        self.client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.client:
            await self.client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET `path` and return the decoded JSON body.

        Raises:
            SourceFetchError: On HTTP 429, other HTTP errors, connection
                              problems or an undecodable body
        """
        if not self.client:
            raise RuntimeError("Client not initialized. Use 'async with' statement.")

        log_api_request(self.SOURCE_NAME, path, params)
        started = time.monotonic()

        try:
            response = await self.client.get(path, params=params)
            log_api_response(self.SOURCE_NAME, path, response.status_code, time.monotonic() - started)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            reason = FetchFailureReason.RATE_LIMIT if status == 429 else FetchFailureReason.NETWORK
            raise SourceFetchError(
                self.SOURCE_NAME,
                f"HTTP {status} on {path}: {e.response.text[:200]}",
                reason=reason
            ) from e
        except httpx.RequestError as e:
            raise SourceFetchError(
                self.SOURCE_NAME,
                f"Request failed on {path}: {e!r}",
                reason=FetchFailureReason.NETWORK
            ) from e
        except ValueError as e:
            raise SourceFetchError(
                self.SOURCE_NAME,
                f"Invalid JSON from {path}: {e}",
                reason=FetchFailureReason.PARSE
            ) from e

    async def get_markets(self, vs_currency: str = "usd", per_page: int = 100) -> List[Dict[str, Any]]:
        """
        Fetch coins ordered by market cap.

        CoinGecko Endpoint:
            GET /api/v3/coins/markets

        Response Format:
            [
              {
                "id": "bitcoin",
                "symbol": "btc",
                "name": "Bitcoin",
                "current_price": 43250.5,
                "market_cap": 845000000000,
                "total_volume": 28500000000,
                "price_change_percentage_24h": 2.34,
                ...
              }
            ]

        Raises:
            SourceFetchError: If the request fails or the body is not a list
        """
        params = {
            "vs_currency": vs_currency,
            "order": "market_cap_desc",
            "per_page": per_page,
        }
        data = await self._get("/api/v3/coins/markets", params)

        if not isinstance(data, list):
            raise SourceFetchError(
                self.SOURCE_NAME,
                f"Expected a list of coins, got {type(data).__name__}",
                reason=FetchFailureReason.PARSE
            )

        self.logger.debug(f"Fetched {len(data)} coins")
        return data
