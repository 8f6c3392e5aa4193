# coding: utf-8
"""
Fetch client configuration

Defaults mirror the dashboard's behaviour; every option can be overridden
from the environment (see ClientConfig.from_env) or per instance in tests.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from config.config import (
    BACKEND_API_URL,
    BACKEND_HEALTH_URL,
    COINGECKO_API_BASE,
    USE_CORS_PROXY,
)
from src.core.enums import RequestKind


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


@dataclass
class ClientConfig:
    """
    Options of the fetch orchestrator

    Attributes:
        backend_url: Caching proxy base (".../api/coingecko"), empty to skip the proxy
        health_url: Proxy health endpoint probed by the availability prober
        upstream_base: CoinGecko v3 base used for direct calls
        use_fallback_pool: Route the first direct round through public relays
        timeout: Per-call timeout for markets/coin requests (seconds)
        chart_timeout: Per-call timeout for chart requests (seconds)
        relay_extra_timeout: Added to the timeout for relay calls
        max_retries: Retry budget for markets/coin requests
        chart_max_retries: Retry budget for chart requests
        min_spacing: Explicit minimum spacing applied to every request kind
        spacing: Default minimum spacing per request kind (used without min_spacing)
        probe_interval: Seconds a health probe result stays valid
        probe_timeout: Health probe timeout (seconds)
    """

    backend_url: str = BACKEND_API_URL
    health_url: str = BACKEND_HEALTH_URL
    upstream_base: str = COINGECKO_API_BASE
    use_fallback_pool: bool = False
    timeout: float = 15.0
    chart_timeout: float = 20.0
    relay_extra_timeout: float = 5.0
    max_retries: int = 2
    chart_max_retries: int = 3
    min_spacing: Optional[float] = None
    spacing: Dict[RequestKind, float] = field(
        default_factory=lambda: {
            RequestKind.MARKETS: 0.0,
            RequestKind.COIN: 0.0,
            RequestKind.CHART: 3.0,
        }
    )
    probe_interval: float = 60.0
    probe_timeout: float = 2.0

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build from BACKEND_API_URL, USE_CORS_PROXY and CLIENT_* variables"""
        config = cls(
            backend_url=BACKEND_API_URL,
            health_url=BACKEND_HEALTH_URL,
            upstream_base=COINGECKO_API_BASE,
            use_fallback_pool=USE_CORS_PROXY,
            min_spacing=_optional_float("CLIENT_MIN_SPACING"),
        )

        timeout = _optional_float("CLIENT_TIMEOUT")
        if timeout is not None:
            config.timeout = timeout

        max_retries = os.getenv("CLIENT_MAX_RETRIES", "").strip()
        if max_retries:
            config.max_retries = int(max_retries)

        return config

    @property
    def backend_enabled(self) -> bool:
        return bool(self.backend_url)

    def timeout_for(self, kind: RequestKind) -> float:
        return self.chart_timeout if kind == RequestKind.CHART else self.timeout

    def retries_for(self, kind: RequestKind) -> int:
        return self.chart_max_retries if kind == RequestKind.CHART else self.max_retries

    def spacing_for(self, kind: RequestKind) -> float:
        if self.min_spacing is not None:
            return max(self.min_spacing, 0.0)
        return self.spacing.get(kind, 0.0)

    def starts_in_pool(self, kind: RequestKind) -> bool:
        # Charts always try a plain direct call first
        return self.use_fallback_pool and kind != RequestKind.CHART
