from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from serenity.configuration.cache_settings import CacheSettings
from serenity.util.logger import get_logger

logger = get_logger("app_configuration")


# Relative to the project root
CONFIG_PATH = Path("config") / "app_config.yml"
DEFAULT_DB_PATH = "./data/serenity.db"


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml``, exposes
    dictionary-like access helpers, and resolves cache tuning through
    :class:`CacheSettings`. Uses fcntl file locks for safe concurrent access
    across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping, ignoring it.", self.config_path)
            return {}
        return data

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping.

        The returned dict is the internal cache (shallow reference). Callers
        should not mutate it; use get(...) or the provided convenience
        properties instead.
        """
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Return the SQLite database file, relative paths resolved against the working directory."""
        database = self._data.get("database", {})
        value = database.get("path") if isinstance(database, dict) else None
        return Path(str(value or DEFAULT_DB_PATH)).resolve()

    @property
    def default_cache_settings(self) -> CacheSettings:
        """Return the cache defaults from the top level of the ``cache`` section."""
        return CacheSettings.from_mapping(self._cache_section())

    def cache_settings(self, name: str) -> CacheSettings:
        """Return the settings for cache ``name``.

        Per-cache keys under ``cache.<name>`` override the section defaults,
        so a config of::

            cache:
              capacity: 500
              users:
                capacity: 2000

        gives ``users`` a capacity of 2000 and every other cache 500.
        """
        section = self._cache_section()
        return CacheSettings.from_mapping(section.get(name), base=self.default_cache_settings)

    def _cache_section(self) -> Dict[str, Any]:
        section = self._data.get("cache", {})
        return section if isinstance(section, dict) else {}
