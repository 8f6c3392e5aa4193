"""
Health check endpoint
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from config.config import SERVICE_NAME
from src.api.schemas import HealthResponse

router = APIRouter(prefix="/health", tags=["health"])


def build_health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        service=SERVICE_NAME,
    )


@router.get("", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check, polled by the fetch client's availability prober"""
    return build_health()
