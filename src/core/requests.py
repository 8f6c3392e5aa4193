"""
Logical requests - one semantic data need, independent of the transport that serves it.

Normalization lives here so the proxy (cache keys) and the fetch client
(URLs) agree on what "the same request" means.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

from src.core.enums import RequestKind


# Documented defaults for optional query parameters
MARKETS_DEFAULTS: Dict[str, Any] = {
    "vs_currency": "usd",
    "order": "market_cap_desc",
    "per_page": 50,
    "page": 1,
    "sparkline": False,
}

CHART_DEFAULTS: Dict[str, Any] = {
    "vs_currency": "usd",
    "days": 7,
}

_DEFAULTS: Dict[RequestKind, Dict[str, Any]] = {
    RequestKind.MARKETS: MARKETS_DEFAULTS,
    RequestKind.COIN: {},
    RequestKind.CHART: CHART_DEFAULTS,
}


def normalize_value(value: Any) -> str:
    """
    Render a query value the way upstream expects it

    >>> normalize_value(True)
    'true'
    >>> normalize_value(" USD ")
    'usd'
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip().lower()


def normalize_params(kind: RequestKind, params: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
    """
    Apply defaults, drop unknown/None parameters, stringify, sort by name

    Parameter order of the input never affects the output.
    """
    defaults = _DEFAULTS[kind]
    merged: Dict[str, Any] = dict(defaults)
    for name, value in (params or {}).items():
        if name in defaults and value is not None:
            merged[name] = value
    return {name: normalize_value(merged[name]) for name in sorted(merged)}


@dataclass(frozen=True)
class LogicalRequest:
    """One semantic data need, e.g. "7-day chart for bitcoin in USD"."""

    kind: RequestKind
    params: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    coin_id: Optional[str] = None

    @classmethod
    def build(
        cls,
        kind: RequestKind,
        params: Optional[Mapping[str, Any]] = None,
        coin_id: Optional[str] = None,
    ) -> "LogicalRequest":
        if kind in (RequestKind.COIN, RequestKind.CHART):
            if not coin_id or not str(coin_id).strip():
                raise ValueError(f"{kind.value} request requires a coin id")
            coin_id = normalize_value(coin_id)
        else:
            coin_id = None
        normalized = normalize_params(kind, params)
        return cls(kind=kind, params=tuple(normalized.items()), coin_id=coin_id)

    @classmethod
    def markets(cls, **params: Any) -> "LogicalRequest":
        return cls.build(RequestKind.MARKETS, params)

    @classmethod
    def coin(cls, coin_id: str) -> "LogicalRequest":
        return cls.build(RequestKind.COIN, coin_id=coin_id)

    @classmethod
    def chart(cls, coin_id: str, **params: Any) -> "LogicalRequest":
        return cls.build(RequestKind.CHART, params, coin_id=coin_id)

    def query(self) -> Dict[str, str]:
        """Normalized query parameters as a dict"""
        return dict(self.params)

    def _coin_segment(self) -> str:
        return quote(self.coin_id or "", safe="")

    def backend_path(self) -> str:
        """Path relative to the caching proxy's /coingecko mount"""
        if self.kind == RequestKind.MARKETS:
            return "/markets"
        if self.kind == RequestKind.COIN:
            return f"/coins/{self._coin_segment()}"
        return f"/coins/{self._coin_segment()}/market_chart"

    def upstream_path(self) -> str:
        """Path relative to the CoinGecko v3 base URL"""
        if self.kind == RequestKind.MARKETS:
            return "/coins/markets"
        return self.backend_path()

    def describe(self) -> str:
        """Short human-readable form for logs"""
        parts = [self.kind.value]
        if self.coin_id:
            parts.append(self.coin_id)
        parts.extend(f"{k}={v}" for k, v in self.params)
        return " ".join(parts)
