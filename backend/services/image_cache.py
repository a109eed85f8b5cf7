"""
In-memory per-key cache for resolved image URLs.

Entries are keyed by logical slot (e.g. "<slug>-day-<n>"), not by URL. Only
one producer runs per key at a time: callers arriving while a key is being
resolved wait on the same future instead of starting a second lookup.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[Any]]


@dataclass
class _Entry:
    value: Any
    stored_at: float


class KeyedImageCache:
    """
    Async memoizer with in-flight de-duplication, LRU bound and TTL.

    In-flight futures belong to the running event loop; completed values are
    plain data and survive across loops.
    """

    def __init__(
        self,
        max_entries: Optional[int] = 1024,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries or 0
        self.ttl_seconds = ttl_seconds or 0
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._tasks: Set[asyncio.Task] = set()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not self._expired(entry)

    def _expired(self, entry: _Entry) -> bool:
        if self.ttl_seconds <= 0:
            return False
        return (self._clock() - entry.stored_at) > self.ttl_seconds

    def _store(self, key: str, value: Any) -> None:
        self._entries[key] = _Entry(value=value, stored_at=self._clock())
        self._entries.move_to_end(key)
        if self.max_entries <= 0:
            return
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug("image cache evicted %s", evicted)

    async def _run(self, key: str, producer: Producer, future: asyncio.Future) -> None:
        try:
            value = await producer()
        except asyncio.CancelledError:
            self._in_flight.pop(key, None)
            future.cancel()
            raise
        except Exception as exc:
            # Failures are not cached; the next caller retries the key.
            self._in_flight.pop(key, None)
            if not future.done():
                future.set_exception(exc)
            return
        self._in_flight.pop(key, None)
        self._store(key, value)
        if not future.done():
            future.set_result(value)

    async def memoize(self, key: str, producer: Producer) -> Any:
        """Return the cached value for `key`, running `producer` at most once."""
        entry = self._entries.get(key)
        if entry is not None:
            if not self._expired(entry):
                self._entries.move_to_end(key)
                self.hits += 1
                logger.debug("image cache hit %s", key)
                return entry.value
            del self._entries[key]
            logger.debug("image cache expired %s", key)

        future = self._in_flight.get(key)
        if future is not None:
            self.hits += 1
            logger.debug("image cache joined in-flight %s", key)
            return await asyncio.shield(future)

        self.misses += 1
        logger.debug("image cache miss %s", key)
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        # Mark the exception retrieved so abandoned flights do not log noise.
        future.add_done_callback(lambda f: f.cancelled() or f.exception())
        self._in_flight[key] = future
        task = loop.create_task(self._run(key, producer, future))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        # Shielded so a caller's timeout never cancels the shared lookup.
        return await asyncio.shield(future)

    def invalidate(self, key: str) -> bool:
        """Drop a completed entry. Returns True if one was removed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def stats(self) -> Dict[str, int]:
        return {
            "size": len(self._entries),
            "in_flight": len(self._in_flight),
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }
