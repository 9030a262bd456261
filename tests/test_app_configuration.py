from pathlib import Path

import pytest

from serenity.configuration.app_configuration import DEFAULT_DB_PATH, AppConfig
from serenity.configuration.cache_settings import DEFAULT_STORE_TIMEOUT, CacheSettings


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path, tmp_path: Path) -> None:
    config_path.write_text(
        f"""
database:
  path: {tmp_path / "bot.db"}
cache:
  capacity: 200
  staleness_seconds: 600
  high_water_ratio: 0.8
  sweep_interval_seconds: 60
  store_timeout_seconds: 5
  users:
    capacity: 1000
    store_timeout_seconds: null
""",
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    assert config.database_path == (tmp_path / "bot.db").resolve()

    defaults = config.default_cache_settings
    assert defaults == CacheSettings(
        capacity=200,
        staleness_threshold=600.0,
        high_water_ratio=0.8,
        sweep_interval=60.0,
        store_timeout=5.0,
    )

    users = config.cache_settings("users")
    assert users.capacity == 1000
    assert users.store_timeout is None
    assert users.staleness_threshold == 600.0

    assert config.cache_settings("guilds") == defaults


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.get("cache") is None
    assert config.database_path == Path(DEFAULT_DB_PATH).resolve()
    assert config.cache_settings("guilds") == CacheSettings()


def test_app_config_invalid_yaml_is_ignored(config_path: Path) -> None:
    config_path.write_text("cache: [unterminated", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}


def test_app_config_non_mapping_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    assert AppConfig(config_path).data == {}


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("cache:\n  capacity: 10\n", encoding="utf-8")
    config = AppConfig(config_path)
    assert config.default_cache_settings.capacity == 10

    config_path.write_text("cache:\n  capacity: 20\n", encoding="utf-8")
    config.reload()

    assert config.default_cache_settings.capacity == 20


def test_cache_settings_skips_invalid_values() -> None:
    settings = CacheSettings.from_mapping({"capacity": "lots", "staleness_seconds": "90"})

    assert settings.capacity == CacheSettings().capacity
    assert settings.staleness_threshold == 90.0
    assert settings.store_timeout == DEFAULT_STORE_TIMEOUT


def test_cache_settings_non_mapping_returns_base() -> None:
    base = CacheSettings(capacity=7)
    assert CacheSettings.from_mapping("nonsense", base=base) is base
