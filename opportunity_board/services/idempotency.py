"""Request deduplication keyed by idempotency tokens."""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any, Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResultStore(Protocol[T]):
    async def get(self, key: str) -> T | None: ...

    async def set(self, key: str, value: T) -> None: ...


class InMemoryResultStore(Generic[T]):
    """Completed results with a TTL, capped at ``max_entries`` (oldest first out)."""

    def __init__(self, ttl_seconds: int = 600, max_entries: int = 5000, clock=None):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        self._entries: OrderedDict[str, tuple[T, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    async def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: T) -> None:
        now = self._clock()
        self._entries.pop(key, None)
        self._entries[key] = (value, now + self.ttl_seconds)
        self._evict(now)

    def _evict(self, now: float) -> None:
        expired = [k for k, (_, exp) in self._entries.items() if exp <= now]
        for key in expired:
            del self._entries[key]
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)


class IdempotencyCoordinator(Generic[T]):
    """Runs a unit of work at most once per key.

    A key moves from absent to in-flight when the first caller registers a
    task for it. Later callers with the same key await that task instead of
    starting their own. Once the task succeeds its result goes to the result
    store, where it is served until it expires or is evicted. Failures are
    shared with every waiter but not cached, so a retry runs the work again.
    """

    def __init__(self, store: ResultStore[T] | None = None):
        self.store: ResultStore[T] = (
            store if store is not None else InMemoryResultStore()
        )
        self._in_flight: dict[str, asyncio.Future[T]] = {}
        self._tasks: set[asyncio.Task] = set()

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def run(self, key: str | None, work: Callable[[], Awaitable[T]]) -> T:
        if key is None:
            return await work()

        loop = asyncio.get_running_loop()
        candidate: asyncio.Future[T] = loop.create_future()
        pending = self._in_flight.setdefault(key, candidate)

        if pending is candidate:
            task = loop.create_task(self._execute(key, work))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            task.add_done_callback(lambda t: _copy_outcome(t, candidate))
        else:
            logger.info(f"Joining in-flight request for idempotency key {key}")

        # Work keeps running if the caller goes away.
        return await asyncio.shield(pending)

    async def _execute(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        try:
            cached = await self.store.get(key)
            if cached is not None:
                logger.info(f"Serving cached result for idempotency key {key}")
                return cached

            result = await work()
            await self.store.set(key, result)
            return result
        finally:
            self._in_flight.pop(key, None)


def _copy_outcome(task: "asyncio.Task[Any]", future: asyncio.Future) -> None:
    if future.done():
        return
    if task.cancelled():
        future.cancel()
        return
    exc = task.exception()
    if exc is not None:
        future.set_exception(exc)
    else:
        future.set_result(task.result())
