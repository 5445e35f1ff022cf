from __future__ import annotations
from pathlib import Path
import fcntl
import os
from typing import Any, Dict

import yaml

from cardcord.configuration.coordination_settings import CoordinationSettings
from cardcord.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path(os.getenv("CARDCORD_CONFIG") or "./config/app_config.yml").resolve()

# Environment variables that override single keys of the ``coordination`` section
ENV_OVERRIDES = {
    "CELEBRATION_CHANNEL_NAME": "celebration_channel_name",
    "BIRTHDAY_ROLE_NAME": "birthday_role_name",
}


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches contents of ``./config/app_config.yml``, exposes dictionary-like
    access helpers, and resolves coordination settings through
    :class:`CoordinationSettings`. Uses fcntl file locks for safe concurrent access
    across processes (the bot and the scheduler CLI may read the file at the same time).
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
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                if not isinstance(data, dict):
                    logger.warning("[APP CONFIGURATION] Config %s is not a mapping; using defaults.", self.config_path)
                    return {}
                return data
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

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
        """Return the current cached configuration mapping (do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def coordination(self) -> CoordinationSettings:
        """Return the ``coordination`` section wrapped in a typed helper.

        Environment overrides from :data:`ENV_OVERRIDES` take precedence over
        the file so deployments can rename the celebration channel or role
        without editing YAML.
        """
        section = self._data.get("coordination", {})
        settings = dict(section) if isinstance(section, dict) else {}
        for env_name, key in ENV_OVERRIDES.items():
            if value := os.getenv(env_name):
                settings[key] = value
        return CoordinationSettings(settings)

    @property
    def database_path(self) -> Path:
        """Return the SQLite database path (default ``./data/cardcord.db``)."""
        database = self._data.get("database", {})
        value = database.get("path") if isinstance(database, dict) else None
        return Path(value or "./data/cardcord.db").resolve()


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
