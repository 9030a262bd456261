"""
Capacity-bounded, time-aware entity cache.

Entries are stamped with the monotonic time of their last read or write.
When the cache is full, inserting a new key evicts the entry with the oldest
stamp (LRU-by-timestamp). Independently, :meth:`BoundedTimedCache.sweep`
drops entries that have not been touched for longer than the staleness
threshold, but only once the cache has filled past its high-water mark so a
lightly loaded cache is never scanned for nothing.

Every public operation runs without an await point and holds an ``RLock``
for its scan+mutate step, so operations are atomic with respect to each other
both on the event loop and when invoked from a worker thread.
"""

from __future__ import annotations

import itertools
import math
import threading
from typing import Dict, Generic, Hashable, Iterable, List, Optional, TypeVar

from serenity.cache.clock import ClockSource, MonotonicClock
from serenity.cache.entry import CacheEntry
from serenity.cache.errors import CapacityInvariantViolation
from serenity.cache.metrics import MetricsHook
from serenity.util.logger import get_logger

logger = get_logger("bounded_cache")

K = TypeVar("K", bound=Hashable)
E = TypeVar("E")

DEFAULT_CAPACITY = 100
DEFAULT_STALENESS_SECONDS = 1800.0
DEFAULT_HIGH_WATER_RATIO = 0.9


class BoundedTimedCache(Generic[K, E]):
    """
    Mapping from key to entity holding at most ``capacity`` entries.

    Attributes:
        name (str): Label used in log lines and metrics.
        capacity (int): Maximum number of entries.
        staleness_threshold (float): Default age in seconds past which :meth:`sweep` drops an entry.
        high_water_ratio (float): Fill ratio at which :meth:`sweep` starts doing work.
    """

    def __init__(
        self,
        *,
        capacity: int = DEFAULT_CAPACITY,
        staleness_threshold: float = DEFAULT_STALENESS_SECONDS,
        high_water_ratio: float = DEFAULT_HIGH_WATER_RATIO,
        clock: Optional[ClockSource] = None,
        metrics: Optional[MetricsHook] = None,
        name: str = "cache",
    ) -> None:
        """
        Initialize the cache.

        Args:
            capacity: Maximum number of entries (must be at least 1)
            staleness_threshold: Default sweep threshold in seconds (must be positive)
            high_water_ratio: Fill ratio in (0, 1] that enables sweeping
            clock: Time source, defaults to ``time.monotonic``
            metrics: Optional observer for hits, misses, evictions and sweeps
            name: Label used in logs

        Raises:
            CapacityInvariantViolation: If any bound is out of range
        """
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise CapacityInvariantViolation(f"capacity must be a positive integer, got {capacity!r}")
        if staleness_threshold <= 0:
            raise CapacityInvariantViolation(
                f"staleness_threshold must be positive, got {staleness_threshold!r}"
            )
        if not 0 < high_water_ratio <= 1:
            raise CapacityInvariantViolation(
                f"high_water_ratio must be in (0, 1], got {high_water_ratio!r}"
            )

        self.name = name
        self.capacity = capacity
        self.staleness_threshold = float(staleness_threshold)
        self.high_water_ratio = float(high_water_ratio)

        self._clock: ClockSource = clock or MonotonicClock()
        self._metrics = metrics
        self._entries: Dict[K, CacheEntry[E]] = {}
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def get(self, key: K) -> Optional[E]:
        """
        Return the cached entity for ``key`` and refresh its timestamp.

        Args:
            key: Entity identity

        Returns:
            The cached entity, or None on a miss. The backing store is never consulted.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                entry.touch(self._clock.now(), next(self._sequence))
                entity: Optional[E] = entry.entity
            else:
                entity = None

        if entry is None:
            self._notify("on_miss", key)
        else:
            self._notify("on_hit", key)
        return entity

    def put(self, key: K, entity: E) -> None:
        """
        Insert or overwrite ``key``.

        An existing key is overwritten in place and its timestamp refreshed.
        A new key arriving while the cache is full first evicts the single
        entry with the oldest timestamp.
        """
        evicted = None
        with self._lock:
            now = self._clock.now()
            entry = self._entries.get(key)
            if entry is not None:
                entry.entity = entity
                entry.touch(now, next(self._sequence))
            else:
                if len(self._entries) >= self.capacity:
                    evicted = self._evict_oldest()
                self._entries[key] = CacheEntry(entity=entity, last_access=now, sequence=next(self._sequence))

        if evicted is not None:
            logger.debug("[CACHE] %s at capacity (%d), evicted key %s", self.name, self.capacity, evicted)
            self._notify("on_eviction", evicted)

    def insert_many(self, entities: Iterable[E]) -> int:
        """
        Bulk-insert entities keyed by their ``id``, in iteration order.

        Eviction still applies, so loading more than ``capacity`` entities
        keeps only the most recently inserted ones.

        Returns:
            Number of entities processed
        """
        count = 0
        for entity in entities:
            self.put(entity.id, entity)  # type: ignore[attr-defined]
            count += 1
        logger.debug("[CACHE] %s bulk-loaded %d entities (%d cached)", self.name, count, len(self))
        return count

    def pop(self, key: K) -> Optional[E]:
        """Remove ``key`` and return its entity, or None if it was not cached."""
        with self._lock:
            entry = self._entries.pop(key, None)
        return None if entry is None else entry.entity

    def sweep(self, staleness_threshold: Optional[float] = None) -> int:
        """
        Drop every entry idle for longer than the staleness threshold.

        Does nothing while the cache holds fewer than :attr:`high_water_mark`
        entries, regardless of entry ages.

        Args:
            staleness_threshold: Age in seconds; defaults to the cache's configured threshold

        Returns:
            Number of entries removed
        """
        threshold = self.staleness_threshold if staleness_threshold is None else float(staleness_threshold)

        with self._lock:
            if len(self._entries) < self.high_water_mark:
                return 0

            now = self._clock.now()
            stale = [key for key, entry in self._entries.items() if entry.age(now) > threshold]
            for key in stale:
                del self._entries[key]
            remaining = len(self._entries)

        logger.debug(
            "[CACHE] %s sweep removed %d stale entries (threshold=%.0fs, %d remaining)",
            self.name, len(stale), threshold, remaining,
        )
        self._notify("on_sweep", len(stale))
        return len(stale)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def high_water_mark(self) -> int:
        """Entry count from which :meth:`sweep` scans (90 for capacity 100 at ratio 0.9)."""
        return max(1, math.ceil(round(self.capacity * self.high_water_ratio, 6)))

    def is_empty(self) -> bool:
        return not self._entries

    def keys(self) -> List[K]:
        with self._lock:
            return list(self._entries)

    def last_access(self, key: K) -> Optional[float]:
        """Return the last-access stamp of ``key`` without refreshing it."""
        with self._lock:
            entry = self._entries.get(key)
            return None if entry is None else entry.last_access

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<BoundedTimedCache name={self.name!r} capacity={self.capacity} length={len(self._entries)}>"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _evict_oldest(self) -> K:
        # Caller holds the lock. Sequence breaks timestamp ties in touch order.
        key, _ = min(
            self._entries.items(),
            key=lambda item: (item[1].last_access, item[1].sequence),
        )
        del self._entries[key]
        return key

    def _notify(self, event: str, payload: object) -> None:
        if self._metrics is None:
            return
        try:
            getattr(self._metrics, event)(payload)
        except Exception:
            logger.exception("[CACHE] %s metrics hook failed on %s", self.name, event)
