"""
In-memory query cache addressed by hierarchical keys.

Holds the locally known, possibly stale copies of remote activities and
activity lists. Supports:

- point read/write by full key
- invalidate / remove by key prefix (scoped to one subtree)
- fetch-through reads with a stale time and de-duplicated in-flight fetches
- subscriptions, with notifications deferred inside batch() so listeners
  never observe a half-applied multi-key change
- snapshot/restore for optimistic rollback

Single event loop only; no method suspends between reading and writing
an entry.
"""

import asyncio
import copy
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
)

import structlog

from pawdiary.infrastructure.cache.keys import CacheKey

logger = structlog.get_logger(__name__)


class CacheEventType(str, Enum):
    UPDATED = "updated"
    INVALIDATED = "invalidated"
    REMOVED = "removed"


@dataclass(frozen=True)
class CacheEvent:
    type: CacheEventType
    key: CacheKey


Listener = Callable[[CacheEvent], None]


@dataclass
class CacheEntry:
    """One cached value plus its freshness bookkeeping."""

    data: Any
    updated_at: float
    last_accessed: float
    is_stale: bool = False


class _Absent:
    def __repr__(self) -> str:
        return "ABSENT"


# Marks keys that had no entry when a snapshot was taken
ABSENT = _Absent()


@dataclass(frozen=True)
class CacheSnapshot:
    """Copies of entries taken at one instant (ABSENT where none existed)."""

    entries: Dict[CacheKey, Any] = field(default_factory=dict)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self.entries

    def get(self, key: CacheKey) -> Any:
        return self.entries.get(key, ABSENT)


@dataclass
class _InFlight:
    generation: int
    task: "asyncio.Task[Any]"


class QueryCache:
    """
    Process-wide cache of remote query results.

    Example:
        >>> cache = QueryCache()
        >>> cache.set_data(ActivityKeys.list(7), [activity])
        >>> cache.invalidate(ActivityKeys.list(7))
        1
        >>> cache.get_entry(ActivityKeys.list(7)).is_stale
        True
    """

    def __init__(
        self,
        gc_time: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize an empty cache.

        Args:
            gc_time: Seconds an unobserved entry survives collect_garbage()
            clock: Monotonic time source (injectable for tests)
        """
        self.gc_time = gc_time
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._listeners: Dict[CacheKey, List[Listener]] = {}
        self._in_flight: Dict[CacheKey, _InFlight] = {}
        # Bumped on every write/removal/cancel; fetch results are only
        # stored if the generation they started with is still current.
        self._generations: Dict[CacheKey, int] = {}
        self._batch_depth = 0
        self._pending: List[CacheEvent] = []

    # ===== Notifications =====

    def subscribe(self, key: CacheKey, listener: Listener) -> Callable[[], None]:
        """
        Listen to updates, invalidations and removals of one key.

        Returns:
            Callable that removes the listener
        """
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]

        return unsubscribe

    def listener_count(self, key: CacheKey) -> int:
        return len(self._listeners.get(key, []))

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Defer notifications until the outermost batch exits."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._flush()

    def _emit(self, event_type: CacheEventType, key: CacheKey) -> None:
        self._pending.append(CacheEvent(event_type, key))
        if self._batch_depth == 0:
            self._flush()

    def _flush(self) -> None:
        pending, self._pending = self._pending, []
        for event in pending:
            for listener in list(self._listeners.get(event.key, [])):
                try:
                    listener(event)
                except Exception as e:
                    # One failing listener must not starve the others
                    logger.error(
                        "Cache listener failed",
                        key=str(event.key),
                        event_type=event.type.value,
                        error=str(e),
                        exc_info=True,
                    )

    # ===== Point access =====

    def _bump(self, key: CacheKey) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1

    def _matching(self, prefix: CacheKey, exact: bool) -> List[CacheKey]:
        if exact:
            return [prefix] if prefix in self._entries else []
        return [k for k in self._entries if prefix.is_prefix_of(k)]

    def keys(self, prefix: Optional[CacheKey] = None) -> List[CacheKey]:
        if prefix is None:
            return list(self._entries)
        return self._matching(prefix, exact=False)

    def has(self, key: CacheKey) -> bool:
        return key in self._entries

    def get_entry(self, key: CacheKey) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def get_data(self, key: CacheKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        entry.last_accessed = self._clock()
        return entry.data

    def set_data(self, key: CacheKey, data: Any) -> Any:
        """Store `data` under `key` as fresh and notify listeners."""
        now = self._clock()
        self._bump(key)
        self._entries[key] = CacheEntry(data=data, updated_at=now, last_accessed=now)
        self._emit(CacheEventType.UPDATED, key)
        return data

    def update_data(self, key: CacheKey, updater: Callable[[Any], Any]) -> Any:
        """Store updater(current data or None) under `key`."""
        entry = self._entries.get(key)
        return self.set_data(key, updater(entry.data if entry is not None else None))

    # ===== Scoped operations =====

    def invalidate(self, prefix: CacheKey, exact: bool = False) -> int:
        """
        Mark every entry under `prefix` stale.

        Stale entries stay readable; the next fetch() refetches them.
        In-flight fetches for those keys will not overwrite the cache.

        Returns:
            Number of entries marked stale
        """
        keys = self._matching(prefix, exact)
        with self.batch():
            for key in keys:
                self._entries[key].is_stale = True
                self._emit(CacheEventType.INVALIDATED, key)
        self._discard_in_flight(prefix, exact)

        logger.debug("Cache invalidated", prefix=str(prefix), count=len(keys))
        return len(keys)

    def remove(self, prefix: CacheKey, exact: bool = False) -> int:
        """
        Delete every entry under `prefix`.

        Returns:
            Number of entries removed
        """
        keys = self._matching(prefix, exact)
        with self.batch():
            for key in keys:
                del self._entries[key]
                self._bump(key)
                self._emit(CacheEventType.REMOVED, key)
        self._discard_in_flight(prefix, exact)
        return len(keys)

    def cancel(self, prefix: CacheKey, exact: bool = False) -> int:
        """
        Detach in-flight fetches under `prefix` from the cache.

        Callers already awaiting them still get their result; it just
        won't be stored.

        Returns:
            Number of fetches detached
        """
        return self._discard_in_flight(prefix, exact)

    def _discard_in_flight(self, prefix: CacheKey, exact: bool) -> int:
        if exact:
            keys = [prefix] if prefix in self._in_flight else []
        else:
            keys = [k for k in self._in_flight if prefix.is_prefix_of(k)]
        for key in keys:
            del self._in_flight[key]
            self._bump(key)
        return len(keys)

    # ===== Fetch-through reads =====

    async def fetch(
        self,
        key: CacheKey,
        fetcher: Callable[[], Awaitable[Any]],
        stale_time: float = 0.0,
    ) -> Any:
        """
        Read `key`, calling `fetcher` when the entry is missing or stale.

        Concurrent fetches of the same key share one fetcher call.

        Args:
            key: Cache key
            fetcher: Async callable returning the authoritative value
            stale_time: Seconds a fresh entry is served without refetching

        Returns:
            Cached or freshly fetched data

        Raises:
            Exception: Whatever the fetcher raised (the cache is unchanged)
        """
        entry = self._entries.get(key)
        now = self._clock()
        if entry is not None and not entry.is_stale and now - entry.updated_at < stale_time:
            entry.last_accessed = now
            return entry.data

        in_flight = self._in_flight.get(key)
        if in_flight is None:
            generation = self._generations.get(key, 0)
            task = asyncio.ensure_future(self._run_fetch(key, generation, fetcher))
            in_flight = _InFlight(generation=generation, task=task)
            self._in_flight[key] = in_flight

        return await asyncio.shield(in_flight.task)

    async def _run_fetch(
        self,
        key: CacheKey,
        generation: int,
        fetcher: Callable[[], Awaitable[Any]],
    ) -> Any:
        try:
            data = await fetcher()
        finally:
            current = self._in_flight.get(key)
            if current is not None and current.generation == generation:
                del self._in_flight[key]

        if self._generations.get(key, 0) == generation:
            self.set_data(key, data)
        else:
            logger.debug("Discarded superseded fetch result", key=str(key))
        return data

    # ===== Snapshot / restore =====

    def snapshot(self, keys: Iterable[CacheKey]) -> CacheSnapshot:
        """Deep-copy the current data of `keys` (ABSENT if not cached)."""
        entries: Dict[CacheKey, Any] = {}
        for key in keys:
            entry = self._entries.get(key)
            entries[key] = ABSENT if entry is None else copy.deepcopy(entry.data)
        return CacheSnapshot(entries)

    def restore(self, snapshot: CacheSnapshot) -> None:
        """
        Put every snapshotted key back to its captured state.

        Keys that were absent are removed; keys not in the snapshot are
        left untouched. Listeners see the whole restore as one batch.
        """
        with self.batch():
            for key, data in snapshot.entries.items():
                if data is ABSENT:
                    self.remove(key, exact=True)
                else:
                    self.set_data(key, data)

    # ===== Housekeeping =====

    def collect_garbage(self) -> int:
        """
        Drop entries nobody listens to and nobody read for gc_time seconds.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if not self._listeners.get(key) and now - entry.last_accessed > self.gc_time
        ]
        with self.batch():
            for key in expired:
                self.remove(key, exact=True)

        if expired:
            logger.debug("Cache garbage collected", count=len(expired))
        return len(expired)

    def clear(self) -> None:
        """Remove all entries and detach all in-flight fetches."""
        with self.batch():
            for key in list(self._entries):
                self.remove(key, exact=True)
        for key in list(self._in_flight):
            self._discard_in_flight(key, exact=True)

    def size(self) -> int:
        return len(self._entries)
