"""Binance REST API client for fetching candles and exchange metadata.

Every request goes through one retry loop:
- HTTP 429 waits the server-supplied Retry-After (default 5s) and retries
  without consuming the retry budget (bounded by max_rate_limit_waits).
- HTTP 418 (IP ban) and geographic restriction return None immediately.
- Other failures retry up to max_retries times, waiting
  backoff_delay(attempt) between attempts, then return None.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from screener.config import Settings
from screener_core.errors import RateLimited
from screener_core.models.candle import CandleSeries

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 5.0

# Pegged/stable pairs never screened
EXCLUDED_SYMBOLS = frozenset(
    {"USDCUSDT", "USDPUSDT", "EURUSDT", "EURIUSDT", "FDUSDUSDT", "XUSDUSDT"}
)

RESTRICTED_LOCATION_MSG = "restricted location"


def backoff_delay(attempt: int, base: float = 3.0) -> float:
    """Delay before retry number ``attempt`` (1-based): base * attempt."""
    return base * attempt


def _retry_after(response: httpx.Response) -> float:
    value = response.headers.get("retry-after")
    try:
        return float(value) if value is not None else DEFAULT_RETRY_AFTER
    except ValueError:
        return DEFAULT_RETRY_AFTER


def _is_geo_restricted(response: httpx.Response) -> bool:
    if response.status_code == 451:
        return True
    try:
        body = response.json()
    except ValueError:
        return False
    return (
        isinstance(body, dict)
        and body.get("code") == 0
        and RESTRICTED_LOCATION_MSG in str(body.get("msg", ""))
    )


class RateLimiter:
    """Simple rate limiter for API calls."""

    def __init__(self, requests_per_second: int = 30):
        self.requests_per_second = requests_per_second
        self.interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            now = asyncio.get_running_loop().time()
            wait_time = self.last_call + self.interval - now
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = asyncio.get_running_loop().time()


class BinanceRestClient:
    """Binance Spot REST API client."""

    BASE_URL = "https://api1.binance.com/api/v3"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 60.0,
        rate_limit_per_second: int = 30,
        max_retries: int = 3,
        retry_delay: float = 3.0,
        max_rate_limit_waits: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = base_url or self.BASE_URL
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_rate_limit_waits = max_rate_limit_waits
        self.rate_limiter = RateLimiter(rate_limit_per_second)
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> BinanceRestClient:
        return cls(
            base_url=settings.binance_base_url,
            timeout=settings.request_timeout,
            rate_limit_per_second=settings.rate_limit_per_second,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
            max_rate_limit_waits=settings.max_rate_limit_waits,
            **kwargs,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _send(self, endpoint: str, params: dict[str, Any] | None) -> httpx.Response:
        await self.rate_limiter.acquire()
        client = await self._get_client()
        response = await client.get(endpoint, params=params)
        if response.status_code == 429:
            raise RateLimited(_retry_after(response))
        return response

    async def _request(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        max_retries: int | None = None,
    ) -> Any | None:
        """
        GET an endpoint with rate limiting, retries and backoff.

        Args:
            endpoint: Path relative to the base URL (e.g., "/klines")
            params: Query parameters
            max_retries: Override the client's retry budget

        Returns:
            Decoded JSON body, or None if the request ultimately failed
        """
        retries = self.max_retries if max_retries is None else max_retries
        attempt = 0
        rate_limit_waits = 0

        while True:
            try:
                response = await self._send(endpoint, params)

                if response.status_code == 418:
                    logger.error(f"IP has been auto-banned by Binance ({endpoint})")
                    return None
                if response.is_error and _is_geo_restricted(response):
                    logger.error(
                        f"Binance API access is restricted in this region ({endpoint})"
                    )
                    return None

                response.raise_for_status()

            except RateLimited as e:
                rate_limit_waits += 1
                if rate_limit_waits > self.max_rate_limit_waits:
                    logger.error(
                        f"Giving up on {endpoint} after {rate_limit_waits - 1} rate limit waits"
                    )
                    return None
                logger.warning(f"Rate limit exceeded, waiting {e.retry_after}s...")
                await self._sleep(e.retry_after)
                continue

            except httpx.HTTPError as e:
                if attempt >= retries:
                    logger.error(f"Request to {endpoint} failed after {attempt + 1} attempts: {e}")
                    return None
                attempt += 1
                delay = backoff_delay(attempt, self.retry_delay)
                logger.warning(
                    f"Request to {endpoint} failed ({e}), retrying in {delay}s "
                    f"({retries - attempt + 1} attempts left)"
                )
                await self._sleep(delay)
                continue

            try:
                return response.json()
            except ValueError as e:
                logger.error(f"Malformed JSON from {endpoint}: {e}")
                return None

    async def get_klines(
        self,
        symbol: str,
        interval: str,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int = 300,
    ) -> list[list[Any]] | None:
        """
        Fetch raw K-line rows from Binance.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            interval: K-line interval (e.g., "5m", "1h")
            start_time: Start time in epoch ms (inclusive)
            end_time: End time in epoch ms (inclusive)
            limit: Maximum number of K-lines

        Returns:
            List of raw rows, or None if unavailable or malformed
        """
        params: dict[str, Any] = {
            "symbol": symbol,
            "interval": interval,
            "limit": limit,
        }
        if start_time is not None:
            params["startTime"] = start_time
        if end_time is not None:
            params["endTime"] = end_time

        data = await self._request("/klines", params)
        if data is None:
            return None

        if not isinstance(data, list) or not data:
            logger.error(f"Invalid candlestick data for {symbol} {interval}")
            return None

        return data

    async def get_candles(
        self,
        symbol: str,
        interval: str,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int = 300,
    ) -> CandleSeries | None:
        """Fetch K-lines and parse them into a CandleSeries (malformed rows dropped)."""
        rows = await self.get_klines(symbol, interval, start_time, end_time, limit)
        if rows is None:
            return None
        return CandleSeries.from_rows(rows)

    async def get_exchange_info(self) -> dict[str, Any] | None:
        """Get exchange information with pegged/stable pairs removed."""
        data = await self._request("/exchangeInfo")
        if data is None:
            return None

        if not isinstance(data, dict) or not isinstance(data.get("symbols"), list):
            logger.error("Invalid exchange info format")
            return None

        data["symbols"] = [
            info
            for info in data["symbols"]
            if isinstance(info, dict) and info.get("symbol") not in EXCLUDED_SYMBOLS
        ]
        return data

    async def ping(self) -> bool:
        """Check that the API answers (single attempt, no retries)."""
        return await self._request("/ping", max_retries=0) is not None
