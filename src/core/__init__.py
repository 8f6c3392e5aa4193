"""
Core module - base types shared by the caching proxy and the fetch client.
"""

from src.core.enums import RequestKind, RequestState, TransportKind
from src.core.exceptions import (
    MarketDataError,
    UpstreamError,
    RateLimited,
    ServiceUnavailable,
    OriginBlocked,
    InternalFault,
    RequestCancelled,
)
from src.core.requests import LogicalRequest

__all__ = [
    "RequestKind",
    "RequestState",
    "TransportKind",
    "MarketDataError",
    "UpstreamError",
    "RateLimited",
    "ServiceUnavailable",
    "OriginBlocked",
    "InternalFault",
    "RequestCancelled",
    "LogicalRequest",
]
