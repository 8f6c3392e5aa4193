# coding: utf-8
"""
Minimum spacing between outbound attempts of one request kind

Keeps the client from tripping upstream rate limits on its own (switching a
chart's time range quickly would otherwise fire a burst of chart requests).
"""
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from src.client.cancellation import CancellationToken
from src.core.enums import RequestKind


class RequestSpacer:
    """
    Per-kind record of the last attempt that actually started

    An attempt waits for the shortfall since that start, then re-checks:
    another attempt of the same kind may have started meanwhile. Only an
    attempt that gets through the wait records its start, so requests
    cancelled while waiting never push back the ones that replace them.
    """

    def __init__(self, spacing: Mapping[RequestKind, float], clock: Any):
        self.spacing: Dict[RequestKind, float] = dict(spacing)
        self._clock = clock
        self._last_start: Dict[RequestKind, float] = {}

    @classmethod
    def from_config(cls, config: Any, clock: Any) -> "RequestSpacer":
        return cls({kind: config.spacing_for(kind) for kind in RequestKind}, clock)

    def shortfall(self, kind: RequestKind) -> float:
        """Seconds until an attempt of `kind` may start"""
        spacing = self.spacing.get(kind, 0.0)
        last = self._last_start.get(kind)
        if spacing <= 0 or last is None:
            return 0.0
        return max(0.0, last + spacing - self._clock.time())

    def mark_started(self, kind: RequestKind) -> None:
        self._last_start[kind] = self._clock.time()

    async def wait(self, kind: RequestKind, token: Optional[CancellationToken] = None) -> float:
        """
        Wait until an attempt of `kind` may start and record its start

        Returns:
            Total seconds waited

        Raises:
            RequestCancelled: token cancelled during the wait (nothing recorded)
        """
        waited = 0.0
        delay = self.shortfall(kind)
        while delay > 0:
            logger.debug(f"Spacing {kind.value} request: waiting {delay:.2f}s")
            if token is not None:
                await token.sleep(self._clock, delay)
            else:
                await self._clock.sleep(delay)
            waited += delay
            delay = self.shortfall(kind)

        self.mark_started(kind)
        return waited
