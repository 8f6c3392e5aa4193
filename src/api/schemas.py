"""
API Schemas - Pydantic response models for the proxy's own endpoints.

Market data endpoints are pass-through and return upstream JSON untouched.
"""

from typing import Dict

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness check."""

    status: str = "ok"
    timestamp: str
    service: str


class CacheCounters(BaseModel):
    """Counters since process start."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    coalesced: int = 0  # Misses that joined an in-flight fetch
    discarded: int = 0  # Fetch results not stored (cache cleared / newer entry)
    total_requests: int = 0
    hit_rate: float = 0.0


class CacheInfo(BaseModel):
    """One cache."""

    keys: int = Field(..., description="Live (non-expired) keys")
    stats: CacheCounters


class CacheClearResponse(BaseModel):
    message: str
    removed: Dict[str, int] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str
