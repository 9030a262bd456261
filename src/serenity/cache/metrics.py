"""
Observability hooks for the bounded cache.

The cache reports hits, misses, capacity evictions and sweep removals to an
optional :class:`MetricsHook`. :class:`CacheStatistics` is the bundled
implementation: plain counters with a snapshot and a human-readable summary.
"""

from __future__ import annotations

from typing import Dict, Hashable, Protocol

from serenity.util.logger import get_logger

logger = get_logger("cache_metrics")


class MetricsHook(Protocol):
    """
    Observer notified by :class:`~serenity.cache.bounded_cache.BoundedTimedCache`.

    The four callbacks cover the hit, miss, eviction and sweep-removed events.
    ``on_sweep(removed)`` is the sweep-removed callback: it fires once per sweep
    that ran past the high-water gate, with the number of stale entries removed
    (possibly 0).
    """

    def on_hit(self, key: Hashable) -> None:
        ...

    def on_miss(self, key: Hashable) -> None:
        ...

    def on_eviction(self, key: Hashable) -> None:
        ...

    def on_sweep(self, removed: int) -> None:
        ...


class CacheStatistics:
    """
    Counting metrics hook.

    Tracks hits, misses, evictions, sweep runs and the number of entries the
    sweeps removed. One instance is attached to each named cache.
    """

    def __init__(self, name: str = "cache") -> None:
        """
        Initialize the counters.

        Args:
            name: Cache name used in summaries and log lines
        """
        self.name = name
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.sweeps = 0
        self.swept = 0

    def on_hit(self, key: Hashable) -> None:
        self.hits += 1

    def on_miss(self, key: Hashable) -> None:
        self.misses += 1

    def on_eviction(self, key: Hashable) -> None:
        self.evictions += 1
        logger.debug("[CACHE METRICS] %s evicted key %s", self.name, key)

    def on_sweep(self, removed: int) -> None:
        self.sweeps += 1
        self.swept += removed

    @property
    def hit_ratio(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def snapshot(self) -> Dict[str, float]:
        """
        Get the current counters.

        Returns:
            Dictionary with hits, misses, hit_ratio, evictions, sweeps and swept
        """
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_ratio": self.hit_ratio,
            "evictions": self.evictions,
            "sweeps": self.sweeps,
            "swept": self.swept,
        }

    def reset(self) -> None:
        """Reset all counters."""
        self.hits = self.misses = self.evictions = self.sweeps = self.swept = 0
        logger.info("[CACHE METRICS] %s statistics reset", self.name)

    def get_summary(self) -> str:
        """
        Get a human-readable summary of the counters.

        Returns:
            Formatted multi-line string
        """
        return (
            f"{self.name}:\n"
            f"  Hits: {self.hits} ({self.hit_ratio * 100:.1f}%)\n"
            f"  Misses: {self.misses}\n"
            f"  Evictions: {self.evictions}\n"
            f"  Sweeps: {self.sweeps} (removed {self.swept})"
        )
