# coding: utf-8
"""
Time source for the fetch client

Everything in the client that reads time or waits goes through a clock
object, so tests can swap in a fake one and run backoff schedules instantly.
"""
import asyncio
import time


class SystemClock:
    """Monotonic time + asyncio.sleep"""

    def time(self) -> float:
        return time.monotonic()

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)
