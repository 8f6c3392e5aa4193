"""
CoinGecko proxy endpoints
Serves market listing, coin detail and charts from per-endpoint caches
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from src.api.schemas import CacheClearResponse, CacheInfo, ErrorResponse
from src.services.coingecko_service import CoinGeckoService, get_coingecko_service

# Create router
router = APIRouter(
    prefix="/coingecko",
    tags=["coingecko"],
    responses={
        429: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


@router.get("/markets")
async def get_markets(
    vs_currency: str = Query("usd", min_length=1, max_length=10),
    order: str = Query("market_cap_desc", min_length=1, max_length=50),
    per_page: int = Query(50, ge=1, le=250),
    page: int = Query(1, ge=1),
    sparkline: bool = False,
    service: CoinGeckoService = Depends(get_coingecko_service),
) -> Any:
    """
    Get cryptocurrency market data (cached)

    Returns:
        JSON array of market entries, pass-through of CoinGecko /coins/markets
    """
    return await service.get_markets(
        vs_currency=vs_currency,
        order=order,
        per_page=per_page,
        page=page,
        sparkline=sparkline,
    )


@router.get("/coins/{coin_id}")
async def get_coin(
    coin_id: str,
    service: CoinGeckoService = Depends(get_coingecko_service),
) -> Any:
    """Get detailed coin information (cached)"""
    return await service.get_coin(coin_id)


@router.get("/coins/{coin_id}/market_chart")
async def get_market_chart(
    coin_id: str,
    vs_currency: str = Query("usd", min_length=1, max_length=10),
    days: str = Query("7", pattern=r"^(\d+|max)$"),
    service: CoinGeckoService = Depends(get_coingecko_service),
) -> Any:
    """
    Get historical market chart data (cached)

    Returns:
        {"prices": [[timestamp, price], ...], ...}
    """
    return await service.get_market_chart(coin_id, vs_currency=vs_currency, days=days)


@router.get("/cache/stats", response_model=Dict[str, CacheInfo])
async def get_cache_stats(
    service: CoinGeckoService = Depends(get_coingecko_service),
) -> Dict[str, Any]:
    """Cache statistics (for monitoring)"""
    return service.cache_stats()


@router.delete("/cache/clear", response_model=CacheClearResponse)
async def clear_cache(
    service: CoinGeckoService = Depends(get_coingecko_service),
) -> Dict[str, Any]:
    """Clear all caches (admin endpoint)"""
    removed = service.clear_caches()
    return {"message": "All caches cleared", "removed": removed}
