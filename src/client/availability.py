# coding: utf-8
"""
Availability Prober - is the caching proxy worth calling?

Remembers the outcome of the last health probe for a minute. A failed proxy
call overrides the remembered state right away, so the next request goes
direct without paying for another probe.
"""
import asyncio
from typing import Any, Callable, Optional

from loguru import logger

from src.client.clock import SystemClock


class AvailabilityProber:
    """
    Cached backend health state

    Attributes:
        is_available: None until the first probe, then the last known state
        last_checked_at: Clock time of the last probe or override
    """

    def __init__(
        self,
        health_url: str,
        fetcher: Callable[..., Any],
        clock: Optional[Any] = None,
        interval: float = 60.0,
        timeout: float = 2.0,
    ):
        self.health_url = health_url
        self.interval = interval
        self.timeout = timeout
        self.is_available: Optional[bool] = None
        self.last_checked_at: Optional[float] = None
        self.probe_count = 0
        self._fetcher = fetcher
        self._clock = clock or SystemClock()
        self._probe: Optional["asyncio.Future[bool]"] = None
        # Bumped by mark_unavailable so an older probe can't overwrite it
        self._generation = 0

    def is_fresh(self) -> bool:
        if self.is_available is None or self.last_checked_at is None:
            return False
        return self._clock.time() - self.last_checked_at <= self.interval

    async def check(self) -> bool:
        """Known state if fresh, otherwise the result of a (shared) probe"""
        if self.is_fresh():
            return bool(self.is_available)

        if self._probe is None:
            probe = asyncio.ensure_future(self._run_probe(self._generation))
            self._probe = probe
            probe.add_done_callback(self._forget_probe)

        return await asyncio.shield(self._probe)

    def _forget_probe(self, probe: "asyncio.Future[bool]") -> None:
        if self._probe is probe:
            self._probe = None

    async def _run_probe(self, generation: int) -> bool:
        self.probe_count += 1
        try:
            await self._fetcher(self.health_url, timeout=self.timeout)
            available = True
        except Exception as e:
            logger.debug(f"Backend health probe failed: {e!r}")
            available = False

        if generation != self._generation:
            # Overridden while probing
            return bool(self.is_available)

        self.is_available = available
        self.last_checked_at = self._clock.time()
        if available:
            logger.info("Backend API is available, using it for requests")
        else:
            logger.warning("Backend API not available, falling back to direct API calls")
        return available

    def mark_unavailable(self) -> None:
        """Proxy call failed: treat the backend as down for the next interval"""
        self._generation += 1
        self.is_available = False
        self.last_checked_at = self._clock.time()
