"""
Binance REST API Client

Async HTTP client for the Binance spot REST API, used by BinanceSource.

It handles:
- HTTP session lifecycle (async context manager)
- Mapping HTTP/network problems onto SourceFetchError
- Request/response logging

There is no retry loop here: a failed request fails the fetch
and the aggregator records the source as failed for that cycle.

API Documentation:
    https://binance-docs.github.io/apidocs/spot/en/

Usage:
    async with BinanceAPIClient() as client:
        tickers = await client.get_ticker_24hr()
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import aiohttp

from core.errors import FetchFailureReason, SourceFetchError
from core.logging import get_logger, log_api_request, log_api_response


# Binance answers 429 when over the request weight limit and 418 once the IP
# has been auto-banned for ignoring 429s.
RATE_LIMIT_STATUSES = (418, 429)


class BinanceAPIClient:
    """
    Async HTTP client for the Binance spot REST API.

    Attributes:
        base_url: API base URL
        timeout: Total request timeout in seconds
        session: aiohttp ClientSession (open inside `async with`)

    Example:
        >>> async with BinanceAPIClient() as client:
        ...     tickers = await client.get_ticker_24hr()
        ...     print(f"Fetched {len(tickers)} tickers")
    """

    SOURCE_NAME = "binance"
    BASE_URL = "https://api.binance.com"

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        self.logger.debug("BinanceAPIClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.logger.debug("BinanceAPIClient session closed")

    # ============================================
    # HTTP Request Handler
    # ============================================

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make a GET request and return the decoded JSON body.

        Raises:
            RuntimeError: If used outside `async with`
            SourceFetchError: On rate limiting (418/429), other non-200
                              statuses, timeouts, connection errors or an
                              undecodable body
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        url = f"{self.base_url}{path}"
        log_api_request(self.SOURCE_NAME, path, params)
        started = time.monotonic()

        try:
            async with self.session.get(
                url,
                params=params,
                headers={"Content-Type": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as resp:
                log_api_response(self.SOURCE_NAME, path, resp.status, time.monotonic() - started)

                if resp.status in RATE_LIMIT_STATUSES:
                    raise SourceFetchError(
                        self.SOURCE_NAME,
                        f"Rate limited (HTTP {resp.status}) on {path}",
                        reason=FetchFailureReason.RATE_LIMIT
                    )

                if resp.status != 200:
                    text = await resp.text()
                    raise SourceFetchError(
                        self.SOURCE_NAME,
                        f"HTTP {resp.status} on {path}: {text[:200]}",
                        reason=FetchFailureReason.NETWORK
                    )

                try:
                    return await resp.json()
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise SourceFetchError(
                        self.SOURCE_NAME,
                        f"Invalid JSON from {path}: {e}",
                        reason=FetchFailureReason.PARSE
                    ) from e

        except asyncio.TimeoutError as e:
            raise SourceFetchError(
                self.SOURCE_NAME,
                f"Timeout after {self.timeout}s on {path}",
                reason=FetchFailureReason.NETWORK
            ) from e
        except aiohttp.ClientError as e:
            raise SourceFetchError(
                self.SOURCE_NAME,
                f"Request failed on {path}: {e}",
                reason=FetchFailureReason.NETWORK
            ) from e

    # ============================================
    # API Methods
    # ============================================

    async def get_ticker_24hr(self) -> List[Dict[str, Any]]:
        """
        Fetch 24h rolling ticker statistics for every symbol.

        Binance Endpoint:
            GET /api/v3/ticker/24hr

        Response Format:
            [
              {
                "symbol": "BTCUSDT",
                "priceChangePercent": "2.340",
                "lastPrice": "43250.50000000",
                "volume": "28500.12000000",
                "closeTime": 1704110400000,
                ...
              }
            ]

        Raises:
            SourceFetchError: If the request fails or the body is not a list
        """
        data = await self._get("/api/v3/ticker/24hr")

        if not isinstance(data, list):
            raise SourceFetchError(
                self.SOURCE_NAME,
                f"Expected a list of tickers, got {type(data).__name__}",
                reason=FetchFailureReason.PARSE
            )

        self.logger.debug(f"Fetched {len(data)} tickers")
        return data
