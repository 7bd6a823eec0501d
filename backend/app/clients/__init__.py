"""Exchange clients."""

from app.clients.binance_rest import (
    BinanceRestClient,
    CandleCache,
    RateLimiter,
    UpstreamError,
    base_symbol,
    normalize_symbol,
)

__all__ = [
    "BinanceRestClient",
    "CandleCache",
    "RateLimiter",
    "UpstreamError",
    "base_symbol",
    "normalize_symbol",
]
