"""
Bounded in-memory entity caching.

- **bounded_cache.py**: ``BoundedTimedCache``, a capacity-bounded map with
  LRU-by-timestamp eviction and a high-water-gated stale sweep.
- **read_through.py**: ``ReadThroughCache``, get-or-create against a backing
  store with one in-flight load per key and write-through updates.
- **eviction_scheduler.py**: ``EvictionScheduler``, the recurring sweep task
  with graceful stop.
- **store.py**, **entry.py**, **clock.py**, **metrics.py**, **errors.py**:
  the contracts and leaf types the above are built from.
"""

from serenity.cache.bounded_cache import BoundedTimedCache
from serenity.cache.clock import ClockSource, ManualClock, MonotonicClock
from serenity.cache.entry import CacheEntry, Entity
from serenity.cache.errors import (
    CacheError,
    CapacityInvariantViolation,
    DuplicateKey,
    EntityMissing,
    StoreTimeout,
    StoreUnavailable,
)
from serenity.cache.eviction_scheduler import EvictionScheduler
from serenity.cache.metrics import CacheStatistics, MetricsHook
from serenity.cache.read_through import ReadThroughCache
from serenity.cache.store import BackingStore

__all__ = [
    "BackingStore",
    "BoundedTimedCache",
    "CacheEntry",
    "CacheError",
    "CacheStatistics",
    "CapacityInvariantViolation",
    "ClockSource",
    "DuplicateKey",
    "Entity",
    "EntityMissing",
    "EvictionScheduler",
    "ManualClock",
    "MetricsHook",
    "MonotonicClock",
    "ReadThroughCache",
    "StoreTimeout",
    "StoreUnavailable",
]
