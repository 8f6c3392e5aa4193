# coding: utf-8
"""
Cancellation for superseded requests

A dashboard widget (a "slot", e.g. the price chart of the coin modal) only
cares about its newest request. Starting a new request for a slot cancels the
token of the previous one; the older request stops at its next suspension
point and its outcome is never delivered.
"""
import asyncio
from typing import Any, Awaitable, Dict, Optional, TypeVar

from loguru import logger

from src.core.exceptions import RequestCancelled

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation flag that waits can race against"""

    def __init__(self, label: Optional[str] = None):
        self.label = label
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.debug(f"Request cancelled: {self.label or 'anonymous'}")
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelled(f"Request superseded ({self.label or 'anonymous'})")

    async def sleep(self, clock: Any, delay: float) -> None:
        """
        Wait `delay` seconds on `clock`, waking up early on cancellation

        Raises:
            RequestCancelled: token cancelled before or during the wait
        """
        self.raise_if_cancelled()
        if delay <= 0:
            return
        await self.guard(clock.sleep(delay))

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Run `awaitable` until it finishes or the token is cancelled

        On cancellation the pending work is cancelled; if the work already
        finished, its result or error is discarded either way.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()

        if self.cancelled:
            if work.done() and not work.cancelled():
                # Outcome is stale, consume it so asyncio doesn't warn
                work.exception()
            raise RequestCancelled(f"Request superseded ({self.label or 'anonymous'})")

        return work.result()


class SlotRegistry:
    """
    Latest token per UI slot

    Usage:
        >>> slots = SlotRegistry()
        >>> first = slots.acquire("chart")
        >>> second = slots.acquire("chart")
        >>> first.cancelled, second.cancelled
        (True, False)
    """

    def __init__(self):
        self._tokens: Dict[str, CancellationToken] = {}

    def acquire(self, slot: str) -> CancellationToken:
        """New token for `slot`, cancelling the one it replaces"""
        previous = self._tokens.get(slot)
        if previous is not None:
            previous.cancel()
        token = CancellationToken(slot)
        self._tokens[slot] = token
        return token

    def release(self, slot: str, token: CancellationToken) -> None:
        """Forget `token` if it is still the slot's latest"""
        if self._tokens.get(slot) is token:
            del self._tokens[slot]

    def __len__(self) -> int:
        return len(self._tokens)
