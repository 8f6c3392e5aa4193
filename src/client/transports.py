# coding: utf-8
"""
Fallback Transport Pool - public CORS-bypass relays

Each relay takes the full upstream URL (query string included) and returns
the upstream body. The pool remembers which relay to try first: the pointer
persists across logical requests and moves to the next relay whenever the
current one fails.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence
from urllib.parse import quote

from loguru import logger

from src.core.enums import TransportKind


def _append_encoded(prefix: str, target_url: str) -> str:
    return f"{prefix}{quote(target_url, safe='')}"


# How each relay expects the target URL to be embedded
URL_BUILDERS: Dict[TransportKind, Callable[[str, str], str]] = {
    TransportKind.ALLORIGINS: _append_encoded,
    TransportKind.CORSPROXY: _append_encoded,
    TransportKind.CODETABS: _append_encoded,
}


@dataclass(frozen=True)
class FallbackTransport:
    """One relay service"""

    kind: TransportKind
    url_template: str

    @property
    def name(self) -> str:
        return self.kind.value

    def build_url(self, target_url: str) -> str:
        """
        Relay URL for a full upstream URL

        >>> ALLORIGINS.build_url("https://api.coingecko.com/api/v3/coins/bitcoin")
        'https://api.allorigins.win/raw?url=https%3A%2F%2Fapi.coingecko.com%2Fapi%2Fv3%2Fcoins%2Fbitcoin'
        """
        return URL_BUILDERS[self.kind](self.url_template, target_url)


ALLORIGINS = FallbackTransport(TransportKind.ALLORIGINS, "https://api.allorigins.win/raw?url=")
CORSPROXY = FallbackTransport(TransportKind.CORSPROXY, "https://corsproxy.io/?")
CODETABS = FallbackTransport(TransportKind.CODETABS, "https://api.codetabs.com/v1/proxy?quest=")

DEFAULT_TRANSPORTS = (ALLORIGINS, CORSPROXY, CODETABS)


class TransportPool:
    """
    Ordered relays plus the persistent "try this one first" pointer

    Usage:
        >>> pool = TransportPool()
        >>> pool.current.name
        'allorigins'
        >>> pool.rotate().name
        'corsproxy'
    """

    def __init__(self, transports: Optional[Sequence[FallbackTransport]] = None):
        self.transports: List[FallbackTransport] = list(
            DEFAULT_TRANSPORTS if transports is None else transports
        )
        if not self.transports:
            raise ValueError("TransportPool needs at least one transport")
        self.pointer = 0

    def __len__(self) -> int:
        return len(self.transports)

    @property
    def current(self) -> FallbackTransport:
        return self.transports[self.pointer]

    def rotate(self) -> FallbackTransport:
        """Advance the pointer (mod N) and return the new current relay"""
        self.pointer = (self.pointer + 1) % len(self.transports)
        logger.info(
            f"Switching to relay {self.current.name} "
            f"({self.pointer + 1}/{len(self.transports)})"
        )
        return self.current

    def move_past(self, failed: FallbackTransport) -> None:
        """
        Rotate away from a relay that just failed

        No-op when the pointer has already moved on, so concurrent requests
        failing on the same relay advance it only once.
        """
        if self.current == failed:
            self.rotate()

    def cycle(self) -> Iterator[FallbackTransport]:
        """Relays in try order, starting at the pointer (does not move it)"""
        for offset in range(len(self.transports)):
            yield self.transports[(self.pointer + offset) % len(self.transports)]
