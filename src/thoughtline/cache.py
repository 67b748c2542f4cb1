"""Memoized per-document query results for the service layer."""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .config import MAX_CACHE_ENTRIES

log = logging.getLogger(__name__)

T = TypeVar("T")


class QueryCache:
    """Async get-or-compute cache keyed by document and query.

    Concurrent callers asking for the same key share one in-flight
    computation. Failed computations are not cached. Keys start with
    (path, version); older versions of a document are dropped with
    invalidate_stale(), whole documents by the file watcher, and the least
    recently used entries once more than max_entries are held.
    """

    def __init__(self, max_entries: int = MAX_CACHE_ENTRIES) -> None:
        self.max_entries = max_entries
        # Insertion order doubles as recency order
        self._entries: dict[tuple, asyncio.Future] = {}
        # Invalidation arrives from the watcher thread
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    async def get_or_compute(self, key: tuple, compute: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value for key, computing it once if absent.

        Args:
            key: Tuple starting with the document path.
            compute: Zero-argument coroutine function producing the value.
        """
        with self._lock:
            future = self._entries.get(key)
            if future is None:
                self.misses += 1
                log.debug("Cache miss: %s", key)
                future = asyncio.ensure_future(compute())
                future.add_done_callback(lambda f, k=key: self._discard_failed(k, f))
                self._entries[key] = future
                self._evict_overflow()
            else:
                self.hits += 1
                log.debug("Cache hit: %s", key)
                self._entries[key] = self._entries.pop(key)

        # One caller giving up must not cancel the shared computation
        return await asyncio.shield(future)

    def _discard_failed(self, key: tuple, future: asyncio.Future) -> None:
        if future.cancelled() or future.exception() is not None:
            with self._lock:
                if self._entries.get(key) is future:
                    del self._entries[key]

    def _evict_overflow(self) -> None:
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            log.debug("Cache evicted: %s", oldest)

    def invalidate_stale(self, doc_id: str, version: object) -> int:
        """Drop entries for doc_id cached under any other version."""
        with self._lock:
            stale = [
                key for key in self._entries if len(key) > 1 and key[0] == doc_id and key[1] != version
            ]
            for key in stale:
                del self._entries[key]
        if stale:
            log.debug("Dropped %d outdated cached results for %s", len(stale), doc_id)
        return len(stale)

    def invalidate(self, doc_id: str) -> int:
        """Drop every entry for one document. Returns the number removed."""
        with self._lock:
            stale = [key for key in self._entries if key and key[0] == doc_id]
            for key in stale:
                del self._entries[key]
        if stale:
            log.debug("Invalidated %d cached results for %s", len(stale), doc_id)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict[str, Any]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}
