# coding: utf-8
"""
Error taxonomy for market data requests

Every failure that reaches a consumer (dashboard view or HTTP client of the
proxy) is one of these. `status` is the HTTP status the proxy answers with,
`transient` tells the consumer whether trying again later can help.
"""
from typing import Optional


class MarketDataError(Exception):
    """Base class for classified market data failures"""

    status: int = 500
    transient: bool = False

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def to_dict(self) -> dict:
        return {"error": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


class UpstreamError(MarketDataError):
    """Upstream API answered with a non-2xx status"""

    def __init__(self, status: int, message: str):
        super().__init__(message, status=status)

    @property
    def transient(self) -> bool:  # type: ignore[override]
        # 5xx may clear up, 4xx means the request itself is wrong
        return self.status >= 500


class RateLimited(UpstreamError):
    """HTTP 429 from upstream, the proxy or a relay"""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(429, message)
        self.retry_after = retry_after

    @property
    def transient(self) -> bool:  # type: ignore[override]
        return True


class ServiceUnavailable(MarketDataError):
    """No response at all: connection refused, DNS failure, timeout"""

    status = 503
    transient = True

    def __init__(self, message: str = "CoinGecko API is unavailable"):
        super().__init__(message)


class OriginBlocked(ServiceUnavailable):
    """Request rejected by cross-origin policy before reaching upstream"""

    def __init__(self, message: str = "Request blocked by cross-origin policy"):
        super().__init__(message)


class InternalFault(MarketDataError):
    """Unexpected local fault (malformed response, programming error)"""

    status = 500
    transient = False

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


class RequestCancelled(MarketDataError):
    """Request was superseded by a newer one for the same slot"""

    status = 499
    transient = False

    def __init__(self, message: str = "Request superseded"):
        super().__init__(message)


def is_retryable(error: BaseException) -> bool:
    """
    Check if the orchestrator should retry after this error

    Rate limits and network-level failures are retried, everything else
    (4xx/5xx upstream answers, local faults, cancellation) is surfaced.
    """
    return isinstance(error, (RateLimited, ServiceUnavailable))


def is_relay_failure(error: BaseException) -> bool:
    """
    Check if a relay attempt failed in a way that warrants trying the next relay

    Same as retryable errors, plus 5xx answers (the relay itself may be broken).
    """
    if is_retryable(error):
        return True
    return isinstance(error, UpstreamError) and error.status >= 500
