# coding: utf-8
"""
Cache module for the caching proxy

Provides the per-endpoint TTL caches and consistent key generation.
"""

from src.cache.ttl_cache import CacheEntry, TTLCache
from src.cache.cache_keys import CacheKeyBuilder

__all__ = ["CacheEntry", "TTLCache", "CacheKeyBuilder"]
