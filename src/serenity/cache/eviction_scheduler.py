"""Recurring stale-entry sweep for a bounded cache.

Runs :meth:`BoundedTimedCache.sweep` on a fixed interval from a background
asyncio task. A failing sweep is logged and the schedule carries on. Stopping
is graceful: :meth:`EvictionScheduler.stop` signals the loop and awaits it, so
a sweep already in progress finishes before shutdown proceeds.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from serenity.cache.bounded_cache import BoundedTimedCache
from serenity.util.logger import get_logger

logger = get_logger("eviction_scheduler")

DEFAULT_SWEEP_INTERVAL = 300.0


class EvictionScheduler:
    """
    Periodic sweeper for one cache.

    Args:
        cache: The cache to sweep.
        interval: Seconds between sweeps (5 minutes by default).
        staleness_threshold: Override for the cache's own threshold.
    """

    def __init__(
        self,
        cache: BoundedTimedCache,
        *,
        interval: float = DEFAULT_SWEEP_INTERVAL,
        staleness_threshold: Optional[float] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Sweep interval must be positive, got {interval!r}")

        self._cache = cache
        self._interval = float(interval)
        self._staleness_threshold = staleness_threshold
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background sweep task if not already running."""
        if self.is_running:
            logger.warning("[EVICTION SCHEDULER] %s: sweep task already running", self._cache.name)
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._run_loop(self._stop_event),
            name=f"eviction-scheduler:{self._cache.name}",
        )
        logger.info("[EVICTION SCHEDULER] %s: started (interval=%.1fs)", self._cache.name, self._interval)

    async def stop(self) -> None:
        """Stop the loop and wait for any in-flight sweep to complete."""
        if self._task is None:
            return

        assert self._stop_event is not None
        self._stop_event.set()
        try:
            await self._task
        except asyncio.CancelledError:
            # Task cancelled from outside (event loop teardown); nothing left to drain
            if not self._task.cancelled():
                raise
        finally:
            self._task = None
            self._stop_event = None

        logger.info("[EVICTION SCHEDULER] %s: stopped", self._cache.name)

    def run_once(self) -> int:
        """Run one guarded sweep, returning the number of removed entries (0 on failure)."""
        try:
            removed = self._cache.sweep(self._staleness_threshold)
        except Exception:
            logger.exception("[EVICTION SCHEDULER] %s: sweep failed", self._cache.name)
            return 0

        if removed:
            logger.info("[EVICTION SCHEDULER] %s: swept %d stale entries", self._cache.name, removed)
        return removed

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        """Sleep for one interval (or until stopped), sweep, repeat."""
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                self.run_once()
