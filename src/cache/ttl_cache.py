# coding: utf-8
"""
In-process TTL cache for proxy responses

One instance per cached endpoint (markets, coin, chart). Provides:
- Time-bounded entries, replaced wholesale on refresh
- Hit/miss/set counters since process start
- In-flight registry: concurrent misses for one key share a single fetch
- Stale-write protection: fetches started before clear() or before a newer
  write never overwrite the cache
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from config.cache_config import CacheConfig


_MISSING = object()


@dataclass(frozen=True)
class CacheEntry:
    """A stored response and its lifetime"""

    key: str
    value: Any
    stored_at: float
    ttl_seconds: int

    def is_expired(self, now: float) -> bool:
        # Entry created at T with TTL S is a miss at or after T + S
        return now - self.stored_at >= self.ttl_seconds

    def age(self, now: float) -> float:
        return now - self.stored_at


class TTLCache:
    """
    Named TTL cache with statistics

    Usage:
        >>> cache = TTLCache("markets", ttl_seconds=120)
        >>> data = await cache.get_or_fetch(key, lambda: client.fetch("/coins/markets", params))
        >>> cache.get_stats()
        {"hits": 0, "misses": 1, "sets": 1, ...}
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}
        # Bumped by clear(); fetches from an older generation don't write
        self._generation = 0
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "coalesced": 0,
            "discarded": 0,
        }

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        """Live entry for key, dropping it if expired"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get cached value or default

        Counts as a hit or a miss.
        """
        entry = self._lookup(key)
        if entry is None:
            self._stats["misses"] += 1
            if CacheConfig.CACHE_LOG_MISSES:
                logger.debug(f"Cache MISS [{self.name}]: {key}")
            return default

        self._stats["hits"] += 1
        if CacheConfig.CACHE_LOG_HITS:
            logger.debug(f"Cache HIT [{self.name}]: {key}")
        return entry.value

    def set(self, key: str, value: Any) -> CacheEntry:
        """Store value under key, replacing any previous entry"""
        entry = CacheEntry(
            key=key,
            value=value,
            stored_at=self._clock(),
            ttl_seconds=self.ttl_seconds,
        )
        self._entries[key] = entry
        self._stats["sets"] += 1
        logger.debug(f"Cache SET [{self.name}]: {key} (TTL={self.ttl_seconds}s)")
        return entry

    def keys(self) -> List[str]:
        """Keys of live entries (expired ones are purged)"""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return list(self._entries)

    def __len__(self) -> int:
        return len(self.keys())

    def __contains__(self, key: str) -> bool:
        return self._lookup(key) is not None

    def clear(self) -> int:
        """
        Drop every entry

        In-flight fetches keep running for their current waiters but their
        results are not stored.

        Returns:
            Number of entries removed
        """
        removed = len(self._entries)
        self._entries.clear()
        self._inflight.clear()
        self._generation += 1
        logger.info(f"Cache [{self.name}] cleared ({removed} entries)")
        return removed

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the live entry for key, or run fetch() once and store its result

        Concurrent callers that miss on the same key await the same fetch.
        Errors from fetch() propagate to every waiter and are never cached.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        task = self._inflight.get(key)
        if task is not None:
            self._stats["coalesced"] += 1
            logger.debug(f"Cache [{self.name}] joining in-flight fetch for {key}")
        else:
            task = asyncio.ensure_future(self._fetch_and_store(key, fetch, self._generation))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget_inflight(key, done))

        # shield: one cancelled waiter must not abort the fetch for the others
        return await asyncio.shield(task)

    def _forget_inflight(self, key: str, task: "asyncio.Future[Any]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            # Marks the exception retrieved even if every waiter went away
            logger.debug(f"Fetch for [{self.name}] {key} failed: {task.exception()!r}")

    async def _fetch_and_store(
        self, key: str, fetch: Callable[[], Awaitable[Any]], generation: int
    ) -> Any:
        started_at = self._clock()
        value = await fetch()

        if generation != self._generation:
            self._stats["discarded"] += 1
            logger.debug(f"Cache [{self.name}] discarded result for {key}: cache cleared during fetch")
            return value

        current = self._lookup(key)
        if current is not None and current.stored_at > started_at:
            self._stats["discarded"] += 1
            logger.debug(f"Cache [{self.name}] kept newer entry for {key}")
            return value

        self.set(key, value)
        return value

    def inflight_count(self) -> int:
        return len(self._inflight)

    def get_stats(self) -> dict:
        """
        Get cache statistics

        Examples:
            >>> cache.get_stats()
            {"hits": 100, "misses": 20, "sets": 20, "coalesced": 0,
             "discarded": 0, "total_requests": 120, "hit_rate": 0.83}
        """
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = self._stats["hits"] / total if total > 0 else 0

        return {
            **self._stats,
            "total_requests": total,
            "hit_rate": round(hit_rate, 2),
        }
