"""
Core Enums - shared types for the proxy and the fetch client.

Defines:
- RequestKind: logical endpoint category (markets, coin detail, chart)
- RequestState: lifecycle of one logical request inside the orchestrator
- TransportKind: identifiers of the public relay services
"""

from enum import Enum


class RequestKind(str, Enum):
    """Logical endpoint category.

    Each kind owns its own server-side cache and its own client-side
    request spacing.
    """

    MARKETS = "markets"
    COIN = "coin"
    CHART = "chart"

    @property
    def cache_name(self) -> str:
        """Name of the proxy cache that stores this kind."""
        return self.value


class RequestState(str, Enum):
    """State of one logical request in the fetch orchestrator.

    IDLE
      ├─► AWAITING_PROXY ──► DONE
      │        │ (failure: backend marked unavailable)
      ├─► AWAITING_DIRECT ──► DONE
      │        │ (retryable failure)
      │        └─► BACKOFF ──► AWAITING_FALLBACK ──► DONE
      │                             │ (transport failure: rotate)
      │                             └─► AWAITING_FALLBACK (next transport)
      └─► CANCELLED (superseded, from any waiting state)
    """

    IDLE = "idle"
    AWAITING_PROXY = "awaiting_proxy"
    AWAITING_DIRECT = "awaiting_direct"
    AWAITING_FALLBACK = "awaiting_fallback"
    BACKOFF = "backoff"
    DONE = "done"
    CANCELLED = "cancelled"

    @classmethod
    def is_terminal(cls, state: "RequestState") -> bool:
        """Check whether the request has finished."""
        return state in (cls.DONE, cls.CANCELLED)


class TransportKind(str, Enum):
    """Public CORS-bypass relay services, in default rotation order."""

    ALLORIGINS = "allorigins"
    CORSPROXY = "corsproxy"
    CODETABS = "codetabs"
