"""Data layer for fetching and caching VNDirect market data."""

from vnstock_eval.data.cache import PriceCache, price_cache
from vnstock_eval.data.vndirect_client import (
    RetryResult,
    ServerShuttingDownError,
    VNDirectError,
    VNDirectRetryError,
    fetch_ratios,
    fetch_recommendations,
    fetch_stock_prices,
    fetch_stock_prices_with_provenance,
    get_market_state,
    get_vietnam_today,
    shutdown_executor,
)

__all__ = [
    # Cache
    "PriceCache",
    "price_cache",
    # VNDirect
    "RetryResult",
    "ServerShuttingDownError",
    "VNDirectError",
    "VNDirectRetryError",
    "fetch_ratios",
    "fetch_recommendations",
    "fetch_stock_prices",
    "fetch_stock_prices_with_provenance",
    "get_market_state",
    "get_vietnam_today",
    "shutdown_executor",
]
