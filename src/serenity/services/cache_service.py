"""
Owner of the bot's entity caches.

One :class:`CacheService` is built at startup by ``main`` and handed to the
cogs. It wires three caches, each with its own statistics and sweeper:

* ``guilds``   - read-through over :class:`GuildRepository`
* ``users``    - read-through over :class:`UserRepository`
* ``prefixes`` - compiled prefix patterns, derived from ``guilds`` only

Lifecycle::

    service = CacheService(guild_repo, user_repo, config=app_config)
    await service.start()      # warm guilds, start sweepers
    ...
    await service.shutdown()   # drain sweepers, before the database closes
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Protocol

from serenity.cache.bounded_cache import BoundedTimedCache
from serenity.cache.clock import ClockSource
from serenity.cache.errors import StoreUnavailable
from serenity.cache.eviction_scheduler import EvictionScheduler
from serenity.cache.metrics import CacheStatistics
from serenity.cache.read_through import ReadThroughCache
from serenity.configuration.cache_settings import CacheSettings
from serenity.datatypes.guild import SerenityGuild
from serenity.datatypes.user import SerenityUser
from serenity.repositories.guild_repo import GuildRepository
from serenity.repositories.user_repo import UserRepository
from serenity.util.logger import get_logger

if TYPE_CHECKING:
    from serenity.services.prefix_resolver import GuildPrefixes

logger = get_logger("cache_service")

GUILDS = "guilds"
USERS = "users"
PREFIXES = "prefixes"


class CacheSettingsSource(Protocol):
    """Anything that can hand out settings per cache name, e.g. ``AppConfig``."""

    def cache_settings(self, name: str) -> CacheSettings:
        ...


class CacheService:
    """Builds, warms and tears down the guild, user and prefix caches."""

    def __init__(
        self,
        guild_store: GuildRepository,
        user_store: UserRepository,
        *,
        config: Optional[CacheSettingsSource] = None,
        clock: Optional[ClockSource] = None,
    ) -> None:
        """
        Args:
            guild_store: Backing store for guild records
            user_store: Backing store for user records
            config: Source of per-cache settings, defaults are used when None
            clock: Time source shared by all caches (tests pass a ``ManualClock``)
        """
        self._guild_store = guild_store
        self._stats: Dict[str, CacheStatistics] = {}

        guild_settings = self._settings_for(config, GUILDS)
        user_settings = self._settings_for(config, USERS)
        prefix_settings = self._settings_for(config, PREFIXES)

        self.guilds: ReadThroughCache[int, SerenityGuild] = ReadThroughCache(
            self._build_cache(GUILDS, guild_settings, clock),
            guild_store,
            defaults=SerenityGuild.default_fields,
            store_timeout=guild_settings.store_timeout,
            sweep_interval=guild_settings.sweep_interval,
        )
        self.users: ReadThroughCache[int, SerenityUser] = ReadThroughCache(
            self._build_cache(USERS, user_settings, clock),
            user_store,
            defaults=SerenityUser.default_fields,
            store_timeout=user_settings.store_timeout,
            sweep_interval=user_settings.sweep_interval,
        )
        self.prefixes: BoundedTimedCache[int, "GuildPrefixes"] = self._build_cache(
            PREFIXES, prefix_settings, clock
        )
        self._prefix_scheduler = EvictionScheduler(self.prefixes, interval=prefix_settings.sweep_interval)

        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self, warm: bool = True) -> None:
        """
        Optionally warm the guild cache from the database, then start the sweepers.

        A failed warm-up is logged and the caches start cold; it never
        prevents the bot from starting.
        """
        if self._started:
            logger.warning("[CACHE SERVICE] start() called twice, ignoring")
            return

        if warm:
            try:
                guilds = await self._guild_store.fetch_all()
            except StoreUnavailable as exc:
                logger.error("[CACHE SERVICE] Guild warm-up failed, starting cold: %s", exc)
            else:
                self.guilds.warm(guilds)

        for scheduler in self.schedulers:
            scheduler.start()

        self._started = True
        logger.info("[CACHE SERVICE] Started %d caches", len(self._stats))

    async def shutdown(self) -> None:
        """Stop every sweeper, waiting for a sweep in progress to finish."""
        if not self._started:
            return

        for scheduler in self.schedulers:
            await scheduler.stop()

        self._started = False
        logger.info("[CACHE SERVICE] Shut down")

    @property
    def schedulers(self) -> List[EvictionScheduler]:
        return [self.guilds.scheduler, self.users.scheduler, self._prefix_scheduler]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def statistics(self) -> Dict[str, Dict[str, float]]:
        """
        Get counters for every cache.

        Returns:
            Mapping of cache name to its statistics snapshot plus current size
        """
        sizes = {GUILDS: len(self.guilds), USERS: len(self.users), PREFIXES: len(self.prefixes)}
        return {name: {**stats.snapshot(), "size": sizes[name]} for name, stats in self._stats.items()}

    def get_summary(self) -> str:
        return "\n".join(stats.get_summary() for stats in self._stats.values())

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _settings_for(config: Optional[CacheSettingsSource], name: str) -> CacheSettings:
        return config.cache_settings(name) if config is not None else CacheSettings()

    def _build_cache(self, name: str, settings: CacheSettings, clock: Optional[ClockSource]) -> BoundedTimedCache:
        stats = CacheStatistics(name)
        self._stats[name] = stats
        return BoundedTimedCache(
            capacity=settings.capacity,
            staleness_threshold=settings.staleness_threshold,
            high_water_ratio=settings.high_water_ratio,
            clock=clock,
            metrics=stats,
            name=name,
        )
