# coding: utf-8
"""
Cache configuration for the proxy's response caches

Defines expiration times for the three cached endpoints based on:
- Data update frequency
- CoinGecko rate limits (10-50 calls/min on the free tier)
"""
import os


class CacheTTL:
    """
    Time-to-live (TTL) settings for each proxy cache in seconds
    """

    MARKETS = int(os.getenv("CACHE_TTL_MARKETS", "120"))
    """Market listing - 2 minutes (prices move, listing is polled by every client)"""

    COIN = int(os.getenv("CACHE_TTL_COIN", "600"))
    """Coin detail - 10 minutes (mostly metadata)"""

    CHART = int(os.getenv("CACHE_TTL_CHART", "300"))
    """Historical chart - 5 minutes"""


class CacheConfig:
    """
    Cache behavior configuration
    """

    CACHE_NAMESPACE = os.getenv("CACHE_NAMESPACE", "cryptotracker")
    """Namespace prefix for all cache keys"""

    CACHE_KEY_SEPARATOR = ":"
    """Separator for cache key components"""

    CACHE_LOG_HITS = os.getenv("CACHE_LOG_HITS", "true").lower() == "true"
    """Log cache hits"""

    CACHE_LOG_MISSES = os.getenv("CACHE_LOG_MISSES", "true").lower() == "true"
    """Log cache misses (important for monitoring upstream usage)"""


def get_ttl(cache_name: str) -> int:
    """
    Get TTL for a cache by name

    Examples:
        >>> get_ttl('markets')
        120
        >>> get_ttl('chart')
        300
    """
    return getattr(CacheTTL, cache_name.upper())
