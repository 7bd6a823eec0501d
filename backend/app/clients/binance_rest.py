"""Binance Futures REST API client for fetching candles."""

import asyncio
import logging
from typing import Any

import httpx

from core.models.candle import Candle, CandleSeries

logger = logging.getLogger(__name__)

KLINES_ENDPOINT = "/fapi/v1/klines"
MAX_KLINES_PER_REQUEST = 1500


class UpstreamError(Exception):
    """Price feed unreachable, returned an error, or too few candles."""


def base_symbol(symbol: str, quote_asset: str = "USDT") -> str:
    """Strip the quote asset: btcusdt -> BTC, BTC -> BTC."""
    normalized = symbol.strip().upper()
    quote = quote_asset.upper()
    if normalized.endswith(quote) and len(normalized) > len(quote):
        normalized = normalized[: -len(quote)]
    return normalized


def normalize_symbol(symbol: str, quote_asset: str = "USDT") -> str:
    """Full pair name: btc -> BTCUSDT, BTCUSDT -> BTCUSDT."""
    return base_symbol(symbol, quote_asset) + quote_asset.upper()


class RateLimiter:
    """Minimum spacing between consecutive acquisitions.

    ``min_interval=0`` disables waiting, so tests never sleep.
    """

    def __init__(self, min_interval: float = 0.0):
        self.min_interval = min_interval
        self.last_call: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect the interval."""
        if self.min_interval <= 0:
            return
        async with self._lock:
            loop = asyncio.get_running_loop()
            if self.last_call is not None:
                wait_time = self.last_call + self.min_interval - loop.time()
                if wait_time > 0:
                    await asyncio.sleep(wait_time)
            self.last_call = loop.time()


class CandleCache:
    """Per-run cache of latest-candle fetches keyed by (symbol, interval, limit)."""

    def __init__(self):
        self._data: dict[tuple[str, str, int], CandleSeries] = {}

    def get(self, symbol: str, interval: str, limit: int) -> CandleSeries | None:
        return self._data.get((symbol, interval, limit))

    def put(self, symbol: str, interval: str, limit: int, series: CandleSeries) -> None:
        self._data[(symbol, interval, limit)] = series

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class BinanceRestClient:
    """Binance Futures REST API client."""

    BASE_URL = "https://fapi.binance.com"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        history_timeout: float = 30.0,
        quote_asset: str = "USDT",
        min_candles: int = 100,
        page_limit: int = 1000,
        cache: CandleCache | None = None,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or self.BASE_URL
        self.timeout = timeout
        self.history_timeout = history_timeout
        self.quote_asset = quote_asset
        self.min_candles = min_candles
        self.page_limit = page_limit
        self.cache = cache if cache is not None else CandleCache()
        self.rate_limiter = rate_limiter or RateLimiter()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

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

    async def __aenter__(self) -> "BinanceRestClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(
        self,
        endpoint: str,
        params: dict[str, Any],
        timeout: float | None = None,
    ) -> Any:
        """GET with rate limiting; transport and HTTP errors become UpstreamError."""
        await self.rate_limiter.acquire()
        client = await self._get_client()
        try:
            response = await client.get(
                endpoint, params=params, timeout=timeout or self.timeout
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"{endpoint} {params.get('symbol')}: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"{endpoint} {params.get('symbol')}: {e!r}") from e
        return response.json()

    async def _fetch_rows(
        self, params: dict[str, Any], timeout: float | None = None
    ) -> list[list]:
        data = await self._request(KLINES_ENDPOINT, params, timeout=timeout)
        if not isinstance(data, list):
            raise UpstreamError(f"Unexpected klines payload for {params.get('symbol')}: {data!r}")
        return data

    async def get_candles(
        self,
        symbol: str,
        interval: str = "15m",
        limit: int = 200,
        min_candles: int | None = None,
    ) -> CandleSeries:
        """
        Fetch the latest candles of a symbol.

        Args:
            symbol: "BTC" or "BTCUSDT"
            interval: Candle interval (e.g., "15m", "1h")
            limit: Number of candles (max 1500)
            min_candles: Fewer rows raise UpstreamError (default: client minimum)

        Returns:
            CandleSeries, possibly including the still-open last candle
        """
        base = base_symbol(symbol, self.quote_asset)
        cached = self.cache.get(base, interval, limit)
        if cached is not None:
            return cached

        required = self.min_candles if min_candles is None else min_candles
        rows = await self._fetch_rows(
            {
                "symbol": base + self.quote_asset,
                "interval": interval,
                "limit": min(limit, MAX_KLINES_PER_REQUEST),
            }
        )
        if len(rows) < required:
            raise UpstreamError(
                f"Insufficient data for {symbol}: got {len(rows)} candles, "
                f"need at least {required}"
            )

        series = CandleSeries.from_binance(rows)
        self.cache.put(base, interval, limit, series)
        return series

    async def get_candle_range(
        self,
        symbol: str,
        interval: str,
        start_ms: int,
        end_ms: int,
        page_limit: int | None = None,
    ) -> CandleSeries:
        """
        Fetch all candles with open time in [start_ms, end_ms], handling pagination.

        Each page starts at the previous page's last close time + 1. Paging
        stops on a short or empty page, or once a candle closes at or after
        end_ms.

        Raises:
            UpstreamError: If the first page cannot be fetched. Later page
                failures return what was collected so far.
        """
        limit = min(page_limit or self.page_limit, MAX_KLINES_PER_REQUEST)
        pair = normalize_symbol(symbol, self.quote_asset)
        collected: list[Candle] = []
        cursor = start_ms
        pages = 0

        while cursor <= end_ms:
            params = {
                "symbol": pair,
                "interval": interval,
                "startTime": cursor,
                "endTime": end_ms,
                "limit": limit,
            }
            try:
                rows = await self._fetch_rows(params, timeout=self.history_timeout)
            except UpstreamError:
                if not collected:
                    raise
                logger.warning(
                    f"{pair}: page {pages + 1} failed, keeping {len(collected)} candles",
                    exc_info=True,
                )
                break

            if not rows:
                break
            pages += 1

            page = [Candle.from_binance(row) for row in rows]
            collected.extend(page)

            last_close = page[-1].close_time
            if len(page) < limit or last_close >= end_ms:
                break
            cursor = last_close + 1

        in_range = (c for c in collected if start_ms <= c.open_time <= end_ms)
        series = CandleSeries.from_candles(in_range)
        logger.debug(f"{pair} {interval}: {len(series)} candles in {pages} pages")
        return series
