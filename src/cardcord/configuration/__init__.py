"""
Configuration management for Cardcord.

- **app_configuration.py**: YAML configuration loader for global settings
  (database path, coordination section). Falls back gracefully on missing or
  malformed config files and honours a couple of environment overrides.

- **coordination_settings.py**: Typed accessors for the ``coordination``
  section: threshold offset, reminder and cleanup timing, celebration channel,
  temporary role, event polling and the scheduler clock.
"""
