"""
Read-through orchestration between a bounded cache and its backing store.

:class:`ReadThroughCache` answers ``get_or_create`` from memory when it can,
otherwise fetches from the store, creating the row with defaults when it does
not exist yet. Concurrent callers asking for the same missing key share one
in-flight load, so the store sees at most one creation attempt per key from
this process; a creation race lost to another process surfaces from the store
as ``DuplicateKey`` and is resolved with a single re-fetch.

Writes go to the store first and only then to the cache, so a failed store
call never leaves the cache ahead of the database.
"""

from __future__ import annotations

import asyncio
import weakref
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Hashable,
    Iterable,
    Mapping,
    Optional,
    TypeVar,
    Union,
)

from serenity.cache.bounded_cache import BoundedTimedCache
from serenity.cache.errors import DuplicateKey, EntityMissing, StoreTimeout, StoreUnavailable
from serenity.cache.eviction_scheduler import DEFAULT_SWEEP_INTERVAL, EvictionScheduler
from serenity.cache.store import BackingStore
from serenity.util.logger import get_logger

logger = get_logger("read_through_cache")

K = TypeVar("K", bound=Hashable)
E = TypeVar("E")
T = TypeVar("T")

Defaults = Union[Mapping[str, Any], Callable[[Any], Mapping[str, Any]], None]


class ReadThroughCache(Generic[K, E]):
    """
    Cache + backing store pair with get-or-create semantics.

    Attributes:
        cache (BoundedTimedCache): The in-memory layer.
        store (BackingStore): The authoritative store.
        scheduler (EvictionScheduler): Periodic sweeper for ``cache``.
    """

    def __init__(
        self,
        cache: BoundedTimedCache[K, E],
        store: BackingStore[K, E],
        *,
        defaults: Defaults = None,
        store_timeout: Optional[float] = None,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        """
        Args:
            cache: In-memory cache to serve reads from
            store: Backing store consulted on misses
            defaults: Field defaults for ``create``, or a callable building them from the key
            store_timeout: Seconds allowed per store call, None for no limit
            sweep_interval: Seconds between stale sweeps once the scheduler is started
        """
        if store_timeout is not None and store_timeout <= 0:
            raise ValueError(f"store_timeout must be positive, got {store_timeout!r}")

        self.cache = cache
        self.store = store
        self.scheduler = EvictionScheduler(cache, interval=sweep_interval)

        self._defaults = defaults
        self._store_timeout = store_timeout
        self._inflight: Dict[K, asyncio.Task] = {}
        self._write_locks: "weakref.WeakValueDictionary[K, asyncio.Lock]" = weakref.WeakValueDictionary()
        # Invalidation counters, only for keys with a load in progress
        self._generations: Dict[K, int] = {}
        self._loads: Dict[K, int] = {}

    @property
    def name(self) -> str:
        return self.cache.name

    # ------------------------------------------------------------------
    # Cache-only operations
    # ------------------------------------------------------------------

    def get(self, key: K) -> Optional[E]:
        return self.cache.get(key)

    def put(self, key: K, entity: E) -> None:
        self.cache.put(key, entity)

    def pop(self, key: K) -> Optional[E]:
        return self.cache.pop(key)

    def insert_many(self, entities: Iterable[E]) -> int:
        return self.cache.insert_many(entities)

    def warm(self, entities: Iterable[E]) -> int:
        """Pre-populate the cache, typically from a bulk store read at startup."""
        count = self.cache.insert_many(entities)
        logger.info("[READ THROUGH] %s warmed with %d entities (%d cached)", self.name, count, len(self.cache))
        return count

    def invalidate(self, key: K) -> Optional[E]:
        """Drop ``key`` from memory only; loads of ``key`` already in flight will not re-cache it."""
        if key in self._loads:
            self._generations[key] = self._generations.get(key, 0) + 1
        return self.cache.pop(key)

    def in_flight(self, key: K) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self.cache)

    # ------------------------------------------------------------------
    # Store-backed operations
    # ------------------------------------------------------------------

    async def fetch(self, key: K) -> Optional[E]:
        """
        Read-through lookup without creation.

        Returns:
            The entity, or None when neither the cache nor the store has it.

        Raises:
            StoreUnavailable: If the store call fails or times out
        """
        entity = self.cache.get(key)
        if entity is not None:
            return entity

        generation = self._begin_load(key)
        try:
            entity = await self._call(self.store.fetch(key), "fetch", key)
            if entity is not None:
                self._cache_unless_invalidated(key, entity, generation)
        finally:
            self._end_load(key)
        return entity

    async def get_or_create(self, key: K) -> E:
        """
        Return the entity for ``key``, loading or creating it on a miss.

        Concurrent calls for the same key await one shared load. A caller
        being cancelled does not abort the load for the others.

        Raises:
            StoreUnavailable: If the store fails, times out, or a lost creation
                race cannot be resolved by re-fetching
        """
        entity = self.cache.get(key)
        if entity is not None:
            return entity

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._load_or_create(key))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._release(key, done))
        else:
            logger.debug("[READ THROUGH] %s joining in-flight load for %s", self.name, key)

        return await asyncio.shield(task)

    async def update(self, entity: E) -> E:
        """
        Write ``entity`` to the store, then refresh the cached copy.

        Raises:
            EntityMissing: If the row was deleted upstream (the key is invalidated)
            StoreUnavailable: If the store call fails or times out
        """
        key = entity.id  # type: ignore[attr-defined]
        try:
            stored = await self._call(self.store.update(entity), "update", key)
        except EntityMissing:
            self.invalidate(key)
            raise
        self.cache.put(key, stored)
        return stored

    async def modify(self, key: K, change: Callable[[E], E]) -> E:
        """
        Read-modify-write ``key`` with ``change`` applied to the current entity.

        Calls to ``modify`` for the same key run one at a time, so each
        ``change`` sees the result of the previous one. Exceptions raised by
        ``change`` propagate and nothing is written.

        Raises:
            EntityMissing: If the row was deleted upstream (the key is invalidated)
            StoreUnavailable: If the store call fails or times out
        """
        lock = self._write_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._write_locks[key] = lock

        async with lock:
            current = await self.get_or_create(key)
            return await self.update(change(current))

    async def delete(self, key: K) -> None:
        """Delete ``key`` from the store, then drop it from the cache."""
        await self._call(self.store.delete(key), "delete", key)
        self.invalidate(key)
        logger.debug("[READ THROUGH] %s deleted %s", self.name, key)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_scheduler(self) -> None:
        self.scheduler.start()

    async def stop_scheduler(self) -> None:
        await self.scheduler.stop()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _load_or_create(self, key: K) -> E:
        generation = self._begin_load(key)
        try:
            entity = await self._call(self.store.fetch(key), "fetch", key)
            if entity is None:
                try:
                    entity = await self._call(self.store.create(key, self._defaults_for(key)), "create", key)
                    logger.debug("[READ THROUGH] %s created %s", self.name, key)
                except DuplicateKey:
                    logger.info("[READ THROUGH] %s lost creation race for %s, re-fetching", self.name, key)
                    entity = await self._call(self.store.fetch(key), "fetch", key)
                    if entity is None:
                        raise StoreUnavailable(
                            f"{self.name}: {key!r} reported as duplicate but could not be fetched"
                        ) from None

            self._cache_unless_invalidated(key, entity, generation)
        finally:
            self._end_load(key)
        return entity

    def _begin_load(self, key: K) -> int:
        self._loads[key] = self._loads.get(key, 0) + 1
        return self._generations.get(key, 0)

    def _end_load(self, key: K) -> None:
        remaining = self._loads[key] - 1
        if remaining:
            self._loads[key] = remaining
        else:
            del self._loads[key]
            self._generations.pop(key, None)

    def _cache_unless_invalidated(self, key: K, entity: E, generation: int) -> None:
        if self._generations.get(key, 0) == generation:
            self.cache.put(key, entity)

    def _release(self, key: K, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Retrieve the outcome so an exception nobody awaited is not reported as lost
        if not task.cancelled():
            task.exception()

    def _defaults_for(self, key: K) -> Mapping[str, Any]:
        if self._defaults is None:
            return {}
        if callable(self._defaults):
            return self._defaults(key)
        return dict(self._defaults)

    async def _call(self, awaitable: Awaitable[T], operation: str, key: K) -> T:
        if self._store_timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self._store_timeout)
        except asyncio.TimeoutError as exc:
            raise StoreTimeout(
                f"{self.name}: {operation} for {key!r} exceeded {self._store_timeout:.1f}s"
            ) from exc
