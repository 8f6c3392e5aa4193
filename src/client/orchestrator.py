# coding: utf-8
"""
Fetch Orchestrator - resilient market data fetching for the dashboard

Resolves one logical request through, in order:
1. the caching proxy, when the availability prober says it is up
2. a direct upstream call
3. the public relay pool, after a retryable direct failure (or from the
   start when the pool is enabled)

Retries run on tenacity with exponential backoff (5s base / 30s cap once the
request has been rate limited, 1s / 5s otherwise); waits never get shorter
within one request. Once in the pool, each retry goes through the next relay
the request has not tried, starting at the shared pool pointer, and a failing
relay moves the pointer on. The pool is walked at most once per request.
Every wait and network call can be interrupted by a newer request for the
same UI slot.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional
from urllib.parse import urlencode

from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from src.client.availability import AvailabilityProber
from src.client.cancellation import CancellationToken, SlotRegistry
from src.client.clock import SystemClock
from src.client.config import ClientConfig
from src.client.spacing import RequestSpacer
from src.client.transports import FallbackTransport, TransportPool
from src.core.enums import RequestState, TransportKind
from src.core.exceptions import (
    InternalFault,
    MarketDataError,
    RateLimited,
    RequestCancelled,
    is_relay_failure,
    is_retryable,
)
from src.core.http import HttpFetcher
from src.core.requests import LogicalRequest


RATE_LIMIT_BACKOFF = (5.0, 30.0)  # (base, cap) seconds
DEFAULT_BACKOFF = (1.0, 5.0)


def backoff_delay(
    error: Optional[BaseException], retry_index: int, rate_limited: bool = False
) -> float:
    """
    Delay before retry number `retry_index + 1`

    `rate_limited` keeps a request on the rate-limit schedule once it has
    seen a 429. A Retry-After hint lengthens the delay, up to the rate-limit cap.

    >>> backoff_delay(RateLimited(), 0), backoff_delay(RateLimited(), 3)
    (5.0, 30.0)
    >>> backoff_delay(None, 1), backoff_delay(None, 1, rate_limited=True)
    (2.0, 10.0)
    """
    rate_limited = rate_limited or isinstance(error, RateLimited)
    base, cap = RATE_LIMIT_BACKOFF if rate_limited else DEFAULT_BACKOFF
    delay = min(base * 2 ** retry_index, cap)

    retry_after = getattr(error, "retry_after", None)
    if retry_after:
        delay = max(delay, min(retry_after, RATE_LIMIT_BACKOFF[1]))
    return delay


class wait_market_backoff(wait_base):
    """tenacity wait strategy over the errors one request has seen so far"""

    def __init__(self, ctx: "FetchContext"):
        self.ctx = ctx

    def __call__(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, RateLimited):
            self.ctx.rate_limited = True

        delay = backoff_delay(error, retry_state.attempt_number - 1, self.ctx.rate_limited)
        # Waits within one request never get shorter
        if self.ctx.backoff_delays:
            delay = max(delay, self.ctx.backoff_delays[-1])
        return delay


@dataclass
class FetchContext:
    """State machine record of one logical request"""

    request: LogicalRequest
    token: CancellationToken
    slot: Optional[str] = None
    state: RequestState = RequestState.IDLE
    history: List[RequestState] = field(default_factory=list)
    attempts: int = 0  # outbound calls, probes excluded
    rounds: int = 0  # direct or relay attempts after the proxy step
    pool_mode: bool = False
    pool_exhausted: bool = False
    rate_limited: bool = False  # saw a 429 after the proxy step
    transports_tried: List[TransportKind] = field(default_factory=list)
    backoff_delays: List[float] = field(default_factory=list)
    spacing_delays: List[float] = field(default_factory=list)
    source: Optional[str] = None  # "proxy", "direct" or a relay name
    result: Any = None
    error: Optional[MarketDataError] = None

    def transition(self, state: RequestState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def done(self) -> bool:
        return RequestState.is_terminal(self.state)


class FetchOrchestrator:
    """
    Fetches logical requests for the dashboard

    Usage:
        >>> orchestrator = FetchOrchestrator()
        >>> coins = await orchestrator.get_markets(per_page=100)
        >>> chart = await orchestrator.get_market_chart("bitcoin", days=30, slot="coin-modal-chart")
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        fetcher: Optional[Callable[..., Any]] = None,
        prober: Optional[AvailabilityProber] = None,
        pool: Optional[TransportPool] = None,
        clock: Optional[Any] = None,
        spacer: Optional[RequestSpacer] = None,
        slots: Optional[SlotRegistry] = None,
    ):
        self.config = config or ClientConfig.from_env()
        self.clock = clock or SystemClock()
        self.fetcher = fetcher or HttpFetcher()
        self.prober = prober or AvailabilityProber(
            self.config.health_url,
            fetcher=self.fetcher,
            clock=self.clock,
            interval=self.config.probe_interval,
            timeout=self.config.probe_timeout,
        )
        self.pool = pool or TransportPool()
        self.spacer = spacer or RequestSpacer.from_config(self.config, self.clock)
        self.slots = slots or SlotRegistry()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def get_markets(self, slot: Optional[str] = None, **params: Any) -> Any:
        return await self.fetch(LogicalRequest.markets(**params), slot=slot)

    async def get_coin(self, coin_id: str, slot: Optional[str] = None) -> Any:
        return await self.fetch(LogicalRequest.coin(coin_id), slot=slot)

    async def get_market_chart(self, coin_id: str, slot: Optional[str] = None, **params: Any) -> Any:
        return await self.fetch(LogicalRequest.chart(coin_id, **params), slot=slot)

    async def fetch(self, request: LogicalRequest, slot: Optional[str] = None) -> Any:
        """
        Resolve `request` to upstream JSON

        Args:
            request: What to fetch
            slot: UI slot; a newer request for the same slot cancels this one

        Raises:
            MarketDataError: terminal classified failure
            RequestCancelled: superseded by a newer request for `slot`
        """
        return await self.execute(self.new_context(request, slot))

    def new_context(self, request: LogicalRequest, slot: Optional[str] = None) -> FetchContext:
        token = self.slots.acquire(slot) if slot else CancellationToken()
        return FetchContext(request=request, token=token, slot=slot)

    async def execute(self, ctx: FetchContext) -> Any:
        """Run the state machine for `ctx` (inspectable afterwards)"""
        try:
            ctx.result = await self._resolve(ctx)
            ctx.transition(RequestState.DONE)
            return ctx.result

        except RequestCancelled as e:
            ctx.error = e
            ctx.transition(RequestState.CANCELLED)
            logger.debug(f"Discarding superseded request: {ctx.request.describe()}")
            raise

        except MarketDataError as e:
            if ctx.token.cancelled:
                # A stale failure is discarded like a stale success
                ctx.error = RequestCancelled(f"Request superseded ({ctx.slot})")
                ctx.transition(RequestState.CANCELLED)
                raise ctx.error from e
            ctx.error = e
            ctx.transition(RequestState.DONE)
            logger.error(f"Request failed: {ctx.request.describe()} -> {e!r}")
            raise

        finally:
            if ctx.slot:
                self.slots.release(ctx.slot, ctx.token)

    # =========================================================================
    # STATE MACHINE STEPS
    # =========================================================================

    async def _resolve(self, ctx: FetchContext) -> Any:
        if self.config.backend_enabled:
            ctx.token.raise_if_cancelled()
            available = await ctx.token.guard(self.prober.check())
            if available:
                try:
                    return await self._via_proxy(ctx)
                except RequestCancelled:
                    raise
                except MarketDataError as e:
                    logger.warning(
                        f"Backend request failed, falling back to direct API: {e.message}"
                    )
                    self.prober.mark_unavailable()

        return await self._direct_with_retries(ctx)

    async def _via_proxy(self, ctx: FetchContext) -> Any:
        ctx.transition(RequestState.AWAITING_PROXY)
        url = f"{self.config.backend_url.rstrip('/')}{ctx.request.backend_path()}"
        result = await self._call(
            ctx,
            url,
            params=ctx.request.query(),
            timeout=self.config.timeout_for(ctx.request.kind),
        )
        ctx.source = "proxy"
        return result

    async def _direct_with_retries(self, ctx: FetchContext) -> Any:
        kind = ctx.request.kind
        ctx.pool_mode = self.config.starts_in_pool(kind)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.retries_for(kind) + 1),
            wait=wait_market_backoff(ctx),
            retry=retry_if_exception(lambda e: self._should_retry(ctx, e)),
            sleep=lambda delay: ctx.token.sleep(self.clock, delay),
            before_sleep=lambda retry_state: self._enter_backoff(ctx, retry_state),
            reraise=True,
        )

        result = None
        async for attempt in retrying:
            with attempt:
                result = await self._round(ctx)
        return result

    def _should_retry(self, ctx: FetchContext, error: BaseException) -> bool:
        if ctx.pool_exhausted:
            return False
        if ctx.state == RequestState.AWAITING_FALLBACK:
            # Relay 4xx is final, anything else moves to the next relay
            return is_relay_failure(error)
        return is_retryable(error)

    def _enter_backoff(self, ctx: FetchContext, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        error = retry_state.outcome.exception() if retry_state.outcome else None
        ctx.backoff_delays.append(delay)
        ctx.transition(RequestState.BACKOFF)
        if not ctx.pool_mode:
            logger.info(f"{type(error).__name__} on direct call, switching to relay pool")
            ctx.pool_mode = True
        logger.info(
            f"Waiting {delay:g}s before retry {retry_state.attempt_number}/"
            f"{self.config.retries_for(ctx.request.kind)} ({ctx.request.describe()})"
        )

    async def _round(self, ctx: FetchContext) -> Any:
        ctx.rounds += 1
        if ctx.pool_mode:
            return await self._relay_round(ctx)

        ctx.transition(RequestState.AWAITING_DIRECT)
        result = await self._call(
            ctx,
            self._upstream_url(ctx.request),
            params=ctx.request.query(),
            timeout=self.config.timeout_for(ctx.request.kind),
        )
        ctx.source = "direct"
        return result

    async def _relay_round(self, ctx: FetchContext) -> Any:
        """
        One attempt through the next relay this request has not tried yet

        Relays are taken in pool order starting at the shared pointer. A
        failing relay moves the pointer past it, so later requests start with
        the following relay. Requests running side by side each keep their own
        record, so none of them repeats or skips a relay.
        """
        transport = self._next_transport(ctx)
        ctx.transports_tried.append(transport.kind)
        ctx.transition(RequestState.AWAITING_FALLBACK)

        target = self._upstream_url(ctx.request, with_query=True)
        timeout = self.config.timeout_for(ctx.request.kind) + self.config.relay_extra_timeout
        try:
            result = await self._call_relay(ctx, transport, target, timeout)
        except RequestCancelled:
            raise
        except MarketDataError as e:
            if is_relay_failure(e):
                logger.warning(f"Relay {transport.name} failed: {e!r}")
                self.pool.move_past(transport)
                if len(set(ctx.transports_tried)) >= len(self.pool):
                    ctx.pool_exhausted = True
                    logger.error(f"All {len(self.pool)} relays failed for {ctx.request.describe()}")
            raise

        ctx.source = transport.name
        return result

    def _next_transport(self, ctx: FetchContext) -> FallbackTransport:
        for transport in self.pool.cycle():
            if transport.kind not in ctx.transports_tried:
                return transport
        # Unreachable while retries stop at pool exhaustion
        raise InternalFault(f"No untried relay left for {ctx.request.describe()}")

    async def _call_relay(
        self, ctx: FetchContext, transport: FallbackTransport, target: str, timeout: float
    ) -> Any:
        url = transport.build_url(target)
        logger.debug(f"Attempting relay {transport.name}: {url[:150]}")
        return await self._call(ctx, url, params=None, timeout=timeout)

    async def _call(
        self,
        ctx: FetchContext,
        url: str,
        params: Optional[Mapping[str, str]],
        timeout: float,
    ) -> Any:
        """One outbound attempt: spacing wait, cancellation checks, the call itself"""
        waited = await self.spacer.wait(ctx.request.kind, ctx.token)
        if waited:
            ctx.spacing_delays.append(waited)

        ctx.token.raise_if_cancelled()
        ctx.attempts += 1
        return await ctx.token.guard(self.fetcher(url, params=params, timeout=timeout))

    def _upstream_url(self, request: LogicalRequest, with_query: bool = False) -> str:
        url = f"{self.config.upstream_base.rstrip('/')}{request.upstream_path()}"
        query = request.query()
        if with_query and query:
            url = f"{url}?{urlencode(query)}"
        return url
