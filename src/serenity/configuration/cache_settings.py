from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict

from serenity.cache.bounded_cache import (
    DEFAULT_CAPACITY,
    DEFAULT_HIGH_WATER_RATIO,
    DEFAULT_STALENESS_SECONDS,
)
from serenity.cache.eviction_scheduler import DEFAULT_SWEEP_INTERVAL
from serenity.util.logger import get_logger

logger = get_logger("cache_settings")

DEFAULT_STORE_TIMEOUT = 10.0

# YAML key -> CacheSettings field
_KEYS: Dict[str, str] = {
    "capacity": "capacity",
    "staleness_seconds": "staleness_threshold",
    "high_water_ratio": "high_water_ratio",
    "sweep_interval_seconds": "sweep_interval",
    "store_timeout_seconds": "store_timeout",
}


@dataclass(frozen=True, slots=True)
class CacheSettings:
    """Tuning values for one named cache."""

    capacity: int = DEFAULT_CAPACITY
    staleness_threshold: float = DEFAULT_STALENESS_SECONDS
    high_water_ratio: float = DEFAULT_HIGH_WATER_RATIO
    sweep_interval: float = DEFAULT_SWEEP_INTERVAL
    store_timeout: float | None = DEFAULT_STORE_TIMEOUT

    @classmethod
    def from_mapping(cls, data: Dict[str, Any] | None, base: "CacheSettings | None" = None) -> "CacheSettings":
        """Overlay the recognised keys of ``data`` onto ``base`` (or the defaults).

        Values that cannot be coerced are logged and skipped so one typo does
        not take the whole cache section down.
        """
        settings = base or cls()
        if not isinstance(data, dict):
            return settings

        overrides: Dict[str, Any] = {}
        for key, field_name in _KEYS.items():
            if key not in data:
                continue
            raw = data[key]
            try:
                if field_name == "capacity":
                    overrides[field_name] = int(raw)
                elif field_name == "store_timeout" and raw is None:
                    overrides[field_name] = None
                else:
                    overrides[field_name] = float(raw)
            except (TypeError, ValueError):
                logger.error("[CACHE SETTINGS] Ignoring invalid value %r for %s", raw, key)

        return replace(settings, **overrides)
