"""
In-process memoizing cache for outbound async requests.

- Responses are cached per request key with a TTL
- Expired responses move to a bounded stale store used as an error fallback
- Concurrent callers for the same key share one in-flight task
- Work started for a logical operation is registered with a CancellationScope
  and is cancelled together when the operation is abandoned
"""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 30.0
DEFAULT_MAX_STALE_ENTRIES = 128

_MISSING = object()


@dataclass
class CachedResponse:
    data: Any
    timestamp: float
    expires_at: float


class CancellationScope:
    """Groups the tasks of one logical operation so they can be cancelled together"""

    def __init__(self, name: str = "operation"):
        self.name = name
        self.cancelled = False
        self._tasks: set[asyncio.Task] = set()

    def track(self, task: asyncio.Task) -> asyncio.Task:
        """Register a task; tasks registered after cancel() are cancelled immediately"""
        if self.cancelled:
            task.cancel()
            return task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel(self) -> int:
        """Cancel every unfinished task of this scope, returns how many were cancelled"""
        self.cancelled = True
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info(f"❌ Cancelled {len(pending)} request(s) for scope '{self.name}'")
        return len(pending)

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def __aenter__(self) -> "CancellationScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.cancel()
        return False


class RequestCache:
    """TTL cache with in-flight request deduplication"""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        max_stale_entries: int = DEFAULT_MAX_STALE_ENTRIES,
    ):
        self.default_ttl = default_ttl
        self.max_stale_entries = max_stale_entries
        self._clock = clock
        self._entries: dict[str, CachedResponse] = {}
        self._stale: OrderedDict[str, CachedResponse] = OrderedDict()
        self._in_flight: dict[str, asyncio.Task] = {}

    @staticmethod
    def build_key(
        url: str,
        method: str = "GET",
        body: Optional[str] = None,
        cache_key: Optional[str] = None,
    ) -> str:
        """Build the cache key for a request (method + url + body + caller tag)"""
        return f"{method.upper()}:{url}:{body or ''}:{cache_key or ''}"

    def _fresh(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        if self._clock() > entry.expires_at:
            self._expire(key)
            return _MISSING
        return entry.data

    def _expire(self, key: str) -> None:
        """Move an expired entry into the stale store, dropping the oldest past the bound"""
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        self._stale.pop(key, None)
        self._stale[key] = entry
        while len(self._stale) > self.max_stale_entries:
            self._stale.popitem(last=False)

    def _sweep(self) -> None:
        now = self._clock()
        for key in [k for k, entry in self._entries.items() if now > entry.expires_at]:
            self._expire(key)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a non-expired cached value"""
        value = self._fresh(key)
        if value is _MISSING:
            logger.debug(f"❌ Request cache MISS: {key[:80]}")
            return default
        logger.debug(f"🎯 Request cache HIT: {key[:80]}")
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Cache a value for `ttl` seconds (default_ttl when omitted)"""
        self._sweep()
        now = self._clock()
        self._stale.pop(key, None)
        self._entries[key] = CachedResponse(
            data=value,
            timestamp=now,
            expires_at=now + (self.default_ttl if ttl is None else ttl),
        )

    def stale(self, key: str, default: Any = None) -> Any:
        """Last cached value for a key even if it has expired"""
        entry = self._entries.get(key) or self._stale.get(key)
        return entry.data if entry is not None else default

    def invalidate(self, key: str) -> bool:
        removed = self._entries.pop(key, None) is not None
        return self._stale.pop(key, None) is not None or removed

    def clear(self) -> None:
        """Drop all cached values and cancel in-flight requests"""
        for task in self._in_flight.values():
            task.cancel()
        self._in_flight.clear()
        self._entries.clear()
        self._stale.clear()

    def __len__(self) -> int:
        """Number of values held, fresh and stale"""
        return len(self._entries) + len(self._stale)

    def in_flight(self, key: str) -> bool:
        task = self._in_flight.get(key)
        return task is not None and not task.done()

    async def fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
        scope: Optional[CancellationScope] = None,
    ) -> T:
        """
        Return the cached value for `key`, or run `fetcher` once and cache its result.

        Callers arriving while a fetch for the same key is running await that same
        task. The task belongs to the scope of the caller that started it; if that
        scope is cancelled every waiter receives CancelledError. Failed or cancelled
        fetches are never cached.
        """
        cached = self._fresh(key)
        if cached is not _MISSING:
            logger.debug(f"🎯 Request cache HIT: {key[:80]}")
            return cached

        task = self._in_flight.get(key)
        if task is None or task.done():
            logger.debug(f"📡 Request cache fetch: {key[:80]}")
            task = asyncio.ensure_future(self._run(key, fetcher, ttl))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget(k, done))
            if scope is not None:
                scope.track(task)
        else:
            logger.debug(f"🔁 Joining in-flight request: {key[:80]}")

        # Shield so one waiter being cancelled does not cancel the shared fetch
        return await asyncio.shield(task)

    async def _run(self, key: str, fetcher: Callable[[], Awaitable[T]], ttl: Optional[float]) -> T:
        value = await fetcher()
        self.set(key, value, ttl)
        return value

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
