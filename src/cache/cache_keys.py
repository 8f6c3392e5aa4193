# coding: utf-8
"""
Cache key generation utilities

Provides consistent, namespaced key generation for the proxy caches.
"""
from typing import Any, Dict, List, Optional, Union

from config.cache_config import CacheConfig
from config.config import COINGECKO_API_KEY_PARAM
from src.core.requests import LogicalRequest, normalize_value


class CacheKeyBuilder:
    """
    Utility class for building consistent cache keys

    Key format: {namespace}:{service}:{method}:{params}

    Examples:
        cryptotracker:coingecko:markets:order=market_cap_desc&page=1&per_page=50&sparkline=false&vs_currency=usd
        cryptotracker:coingecko:coin:bitcoin
        cryptotracker:coingecko:chart:bitcoin:days=7&vs_currency=usd
    """

    SEPARATOR = CacheConfig.CACHE_KEY_SEPARATOR
    NAMESPACE = CacheConfig.CACHE_NAMESPACE

    # Never part of a key: same data regardless of who pays for the call
    EXCLUDED_PARAMS = frozenset({COINGECKO_API_KEY_PARAM})

    @classmethod
    def build(
        cls,
        service: str,
        method: str,
        params: Optional[Union[Dict[str, Any], List[Any], str]] = None,
    ) -> str:
        """
        Build a cache key from components

        Examples:
            >>> CacheKeyBuilder.build('coingecko', 'markets', {'vs_currency': 'usd', 'page': 1})
            'cryptotracker:coingecko:markets:page=1&vs_currency=usd'

            >>> CacheKeyBuilder.build('coingecko', 'coin', 'bitcoin')
            'cryptotracker:coingecko:coin:bitcoin'
        """
        key_parts = [cls.NAMESPACE, service, method]

        if params:
            params_str = cls._serialize_params(params)
            if params_str:
                key_parts.append(params_str)

        return cls.SEPARATOR.join(key_parts)

    @classmethod
    def _serialize_params(cls, params: Union[Dict[str, Any], List[Any], str]) -> str:
        """
        Serialize parameters into a consistent string representation

        Dict parameters are sorted by name, so insertion order never matters.

        Examples:
            >>> CacheKeyBuilder._serialize_params({'vs_currency': 'USD', 'page': 1})
            'page=1&vs_currency=usd'
        """
        if isinstance(params, str):
            return normalize_value(params)

        if isinstance(params, dict):
            return "&".join(
                f"{name}={normalize_value(value)}"
                for name, value in sorted(params.items())
                if name not in cls.EXCLUDED_PARAMS and value is not None
            )

        if isinstance(params, (list, tuple)):
            return "_".join(normalize_value(item) for item in params)

        return normalize_value(params)

    @classmethod
    def for_request(cls, request: LogicalRequest, service: str = "coingecko") -> str:
        """
        Derive the cache key of a logical request

        Pure function of the normalized request: kind, coin id and query.
        """
        method = request.kind.cache_name
        if request.coin_id:
            method = f"{method}{cls.SEPARATOR}{normalize_value(request.coin_id)}"
        return cls.build(service, method, request.query())
