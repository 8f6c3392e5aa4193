"""
Fetch client - how the dashboard gets market data.

Proxy first, then direct upstream calls, then public relays, with retries,
request spacing and cancellation of superseded requests.
"""

from src.client.availability import AvailabilityProber
from src.client.cancellation import CancellationToken, SlotRegistry
from src.client.clock import SystemClock
from src.client.config import ClientConfig
from src.client.orchestrator import FetchContext, FetchOrchestrator, backoff_delay
from src.client.spacing import RequestSpacer
from src.client.transports import DEFAULT_TRANSPORTS, FallbackTransport, TransportPool

__all__ = [
    "AvailabilityProber",
    "CancellationToken",
    "SlotRegistry",
    "SystemClock",
    "ClientConfig",
    "FetchContext",
    "FetchOrchestrator",
    "backoff_delay",
    "RequestSpacer",
    "DEFAULT_TRANSPORTS",
    "FallbackTransport",
    "TransportPool",
]
