"""
FastAPI Router for the CryptoTracker backend API
"""

from fastapi import APIRouter

# Import sub-routers
from src.api.coingecko import router as coingecko_router
from src.api.health import router as health_router


# Main router, mounted under /api by api_server
router = APIRouter()

# Include sub-routers (they already carry their prefixes)
router.include_router(health_router)  # /api/health
router.include_router(coingecko_router)  # /api/coingecko/...
