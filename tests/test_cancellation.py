"""
Unit tests for cancellation tokens, slot registry and request spacing
"""
import asyncio

import pytest

from src.client.cancellation import CancellationToken, SlotRegistry
from src.client.config import ClientConfig
from src.client.spacing import RequestSpacer
from src.core.enums import RequestKind
from src.core.exceptions import RequestCancelled


def test_slot_registry_cancels_previous():
    slots = SlotRegistry()
    first = slots.acquire("chart")
    second = slots.acquire("chart")
    other = slots.acquire("markets")

    assert first.cancelled
    assert not second.cancelled
    assert not other.cancelled
    assert len(slots) == 2


def test_release_only_forgets_latest():
    slots = SlotRegistry()
    first = slots.acquire("chart")
    second = slots.acquire("chart")

    slots.release("chart", first)
    assert len(slots) == 1

    slots.release("chart", second)
    assert len(slots) == 0
    assert not second.cancelled


@pytest.mark.asyncio
async def test_guard_returns_result():
    token = CancellationToken("test")

    async def work():
        return 42

    assert await token.guard(work()) == 42


@pytest.mark.asyncio
async def test_guard_discards_result_after_cancel():
    token = CancellationToken("test")
    gate = asyncio.Event()
    finished = []

    async def work():
        await gate.wait()
        finished.append(True)
        return "stale"

    pending = asyncio.ensure_future(token.guard(work()))
    await asyncio.sleep(0)
    token.cancel()

    with pytest.raises(RequestCancelled):
        await pending
    # The in-flight work was aborted
    assert finished == []


@pytest.mark.asyncio
async def test_guard_refuses_to_start_when_cancelled():
    token = CancellationToken()
    token.cancel()
    started = []

    async def work():
        started.append(True)

    with pytest.raises(RequestCancelled):
        await token.guard(work())
    assert started == []


@pytest.mark.asyncio
async def test_sleep_wakes_on_cancel():
    token = CancellationToken()

    class SlowClock:
        async def sleep(self, delay):
            await asyncio.sleep(3600)

    pending = asyncio.ensure_future(token.sleep(SlowClock(), 30))
    await asyncio.sleep(0)
    token.cancel()

    with pytest.raises(RequestCancelled):
        await asyncio.wait_for(pending, timeout=1)


def test_spacing_defaults_from_config(clock):
    spacer = RequestSpacer.from_config(ClientConfig(), clock)

    assert spacer.spacing[RequestKind.CHART] == 3.0
    assert spacer.spacing[RequestKind.MARKETS] == 0.0


def test_spacing_override_applies_to_every_kind(clock):
    spacer = RequestSpacer.from_config(ClientConfig(min_spacing=1.5), clock)

    assert set(spacer.spacing.values()) == {1.5}


def test_shortfall_counts_from_last_start(clock):
    spacer = RequestSpacer({RequestKind.CHART: 3.0}, clock)

    assert spacer.shortfall(RequestKind.CHART) == 0.0
    spacer.mark_started(RequestKind.CHART)
    assert spacer.shortfall(RequestKind.CHART) == 3.0

    clock.advance(1)
    assert spacer.shortfall(RequestKind.CHART) == 2.0
    clock.advance(5)
    assert spacer.shortfall(RequestKind.CHART) == 0.0

    # Unspaced kinds never wait
    spacer.mark_started(RequestKind.MARKETS)
    assert spacer.shortfall(RequestKind.MARKETS) == 0.0


@pytest.mark.asyncio
async def test_wait_sleeps_for_shortfall(clock):
    spacer = RequestSpacer({RequestKind.CHART: 3.0}, clock)

    await spacer.wait(RequestKind.CHART)
    clock.advance(1)
    waited = await spacer.wait(RequestKind.CHART, CancellationToken())

    assert waited == 2.0
    assert clock.sleeps == [2.0]


@pytest.mark.asyncio
async def test_cancelled_wait_records_no_start(clock):
    spacer = RequestSpacer({RequestKind.CHART: 3.0}, clock)
    await spacer.wait(RequestKind.CHART)

    token = CancellationToken("chart")
    token.cancel()
    with pytest.raises(RequestCancelled):
        await spacer.wait(RequestKind.CHART, token)

    # Spacing still counts from the attempt that actually started
    clock.advance(3)
    assert spacer.shortfall(RequestKind.CHART) == 0.0
