# coding: utf-8
"""
CoinGecko caching proxy service

Fronts the CoinGecko v3 API with three independent TTL caches:
- markets: /coins/markets listing
- coin:    /coins/{id} detail
- chart:   /coins/{id}/market_chart history

The service never retries. A miss issues exactly one upstream request and
failures are classified (see src.core.exceptions) and re-raised; retrying is
the fetch client's job.
"""
import time
from typing import Any, Callable, Dict, Optional

from loguru import logger

from config.cache_config import get_ttl
from config.config import (
    COINGECKO_API_BASE,
    COINGECKO_API_KEY,
    COINGECKO_API_KEY_PARAM,
    UPSTREAM_TIMEOUT,
)
from src.cache import CacheKeyBuilder, TTLCache
from src.core.enums import RequestKind
from src.core.exceptions import InternalFault, MarketDataError
from src.core.http import HttpFetcher
from src.core.requests import LogicalRequest


class CoinGeckoClient:
    """
    Upstream client: one GET per call, bounded by a timeout, no retries
    """

    def __init__(
        self,
        fetcher: Optional[Callable[..., Any]] = None,
        base_url: str = COINGECKO_API_BASE,
        api_key: str = COINGECKO_API_KEY,
        timeout: float = UPSTREAM_TIMEOUT,
    ):
        self.fetcher = fetcher or HttpFetcher()
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def build_url(self, request: LogicalRequest) -> str:
        return f"{self.base_url}{request.upstream_path()}"

    def build_params(self, request: LogicalRequest) -> Dict[str, str]:
        """Normalized query plus the demo API key when configured"""
        params = request.query()
        if self.api_key:
            params[COINGECKO_API_KEY_PARAM] = self.api_key
        return params

    async def fetch(self, request: LogicalRequest) -> Any:
        """
        Fetch one logical request from CoinGecko

        Raises:
            UpstreamError / RateLimited: CoinGecko answered non-2xx
            ServiceUnavailable: CoinGecko unreachable or timed out
            InternalFault: anything else
        """
        url = self.build_url(request)
        logger.info(f"Fetching {request.describe()} from CoinGecko API")

        try:
            return await self.fetcher(url, params=self.build_params(request), timeout=self.timeout)

        except MarketDataError as e:
            logger.warning(f"CoinGecko request failed for {request.describe()}: {e!r}")
            raise

        except Exception as e:
            logger.exception(f"Unexpected error fetching {request.describe()}: {e}")
            raise InternalFault(str(e) or "Unknown error") from e


class CoinGeckoService:
    """
    Caching proxy over CoinGecko

    Features:
    - Independent TTL per endpoint (markets 120s, coin 600s, chart 300s by default)
    - At most one upstream fetch per key per TTL window
    - Concurrent misses for one key share a single upstream request
    - Cache statistics and administrative flush
    """

    def __init__(
        self,
        client: Optional[CoinGeckoClient] = None,
        ttl: Optional[Dict[RequestKind, int]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client or CoinGeckoClient()

        ttl = {
            **{kind: get_ttl(kind.cache_name) for kind in RequestKind},
            **(ttl or {}),
        }
        self.caches: Dict[RequestKind, TTLCache] = {
            kind: TTLCache(kind.cache_name, ttl[kind], clock=clock)
            for kind in RequestKind
        }

        logger.info(
            "CoinGecko proxy initialized with TTLs: "
            + ", ".join(f"{kind.value}={seconds}s" for kind, seconds in ttl.items())
        )

    async def get(self, request: LogicalRequest) -> Any:
        """Serve a logical request from cache or upstream"""
        cache = self.caches[request.kind]
        cache_key = CacheKeyBuilder.for_request(request)
        return await cache.get_or_fetch(cache_key, lambda: self.client.fetch(request))

    async def get_markets(
        self,
        vs_currency: Optional[str] = None,
        order: Optional[str] = None,
        per_page: Optional[int] = None,
        page: Optional[int] = None,
        sparkline: Optional[bool] = None,
    ) -> Any:
        """
        Get market listing (missing parameters take the documented defaults)

        Returns:
            List of market entries exactly as CoinGecko returns them
        """
        request = LogicalRequest.markets(
            vs_currency=vs_currency,
            order=order,
            per_page=per_page,
            page=page,
            sparkline=sparkline,
        )
        return await self.get(request)

    async def get_coin(self, coin_id: str) -> Any:
        """Get detailed coin record"""
        return await self.get(LogicalRequest.coin(coin_id))

    async def get_market_chart(
        self,
        coin_id: str,
        vs_currency: Optional[str] = None,
        days: Optional[str] = None,
    ) -> Any:
        """
        Get historical chart

        Returns:
            {"prices": [[timestamp_ms, price], ...], "market_caps": [...], "total_volumes": [...]}
        """
        return await self.get(LogicalRequest.chart(coin_id, vs_currency=vs_currency, days=days))

    def cache_stats(self) -> Dict[str, Dict[str, Any]]:
        """Per cache: number of live keys and counters since process start"""
        return {
            kind.cache_name: {
                "keys": len(cache),
                "stats": cache.get_stats(),
            }
            for kind, cache in self.caches.items()
        }

    def clear_caches(self) -> Dict[str, int]:
        """Unconditionally empty all caches"""
        removed = {kind.cache_name: cache.clear() for kind, cache in self.caches.items()}
        logger.warning(f"All caches cleared: {removed}")
        return removed


# Global service instance
_coingecko_service: Optional[CoinGeckoService] = None


def get_coingecko_service() -> CoinGeckoService:
    """
    Get global CoinGecko proxy service (singleton)

    Also used as a FastAPI dependency, so tests can override it.
    """
    global _coingecko_service
    if _coingecko_service is None:
        _coingecko_service = CoinGeckoService()
    return _coingecko_service
