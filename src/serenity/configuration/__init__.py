"""
Configuration management for Serenity.

- **app_configuration.py**: File-locked YAML configuration loader for global
  settings (database location, cache tuning). Falls back gracefully on missing
  or malformed config files.

- **cache_settings.py**: Typed cache tuning values (capacity, staleness,
  high-water ratio, sweep interval, store timeout) resolved from the ``cache``
  section with per-cache overrides.
"""
