"""
Pytest configuration and fixtures for CryptoTracker tests
"""

import os

# Test environment (must be set before config.config is imported)
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("ALLOW_VERCEL_PREVIEWS", "true")
os.environ.setdefault("FRONTEND_URL", "https://cryptotracker.example.com")

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import pytest

from src.client.config import ClientConfig
from src.client.orchestrator import FetchOrchestrator
from src.core.exceptions import ServiceUnavailable


BACKEND_URL = "http://backend.test/api/coingecko"
HEALTH_URL = "http://backend.test/api/health"
UPSTREAM_BASE = "https://api.coingecko.com/api/v3"

ALLORIGINS_PREFIX = "https://api.allorigins.win/"
CORSPROXY_PREFIX = "https://corsproxy.io/"
CODETABS_PREFIX = "https://api.codetabs.com/"


class FakeClock:
    """
    Manual clock

    Callable (TTLCache clock) and usable as the fetch client's clock:
    sleep() advances time instantly and records the delay.
    """

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def time(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


@dataclass
class Call:
    url: str
    params: Optional[Dict[str, str]]
    timeout: Optional[float]
    at: float


class ScriptedFetcher:
    """
    Fake fetcher answering by URL prefix

    Each route holds a list of outcomes consumed in order; the last one
    repeats. An outcome is a value to return, an exception to raise, or an
    asyncio.Event to wait on before returning the next outcome.
    """

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock
        self.calls: List[Call] = []
        self._routes: List[Tuple[str, List[Any]]] = []

    def route(self, prefix: str, *outcomes: Any) -> "ScriptedFetcher":
        self._routes.append((prefix, list(outcomes)))
        return self

    def calls_to(self, prefix: str) -> List[Call]:
        return [call for call in self.calls if call.url.startswith(prefix)]

    async def __call__(self, url: str, params=None, timeout=None) -> Any:
        now = self.clock.time() if self.clock else 0.0
        self.calls.append(Call(url, dict(params) if params else None, timeout, now))

        for prefix, outcomes in self._routes:
            if url.startswith(prefix):
                outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
                if isinstance(outcome, asyncio.Event):
                    await outcome.wait()
                    outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome

        raise ServiceUnavailable(f"No route for {url}")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher(clock) -> ScriptedFetcher:
    return ScriptedFetcher(clock)


def make_config(**overrides: Any) -> ClientConfig:
    options = dict(
        backend_url=BACKEND_URL,
        health_url=HEALTH_URL,
        upstream_base=UPSTREAM_BASE,
    )
    options.update(overrides)
    return ClientConfig(**options)


@pytest.fixture
def make_orchestrator(fetcher, clock):
    """Factory: orchestrator wired to the fake fetcher and clock"""

    def factory(**overrides: Any) -> FetchOrchestrator:
        return FetchOrchestrator(config=make_config(**overrides), fetcher=fetcher, clock=clock)

    return factory
