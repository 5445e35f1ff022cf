import datetime
from typing import Any, Dict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class CoordinationSettings:
    """Typed accessors for the ``coordination`` section of the app config.

    Like the rest of the configuration layer this is a thin wrapper over a
    plain mapping; every property falls back to the documented default when
    the key is missing or malformed.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for `key` or `default` if missing."""
        return self.data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return self.data

    def _int(self, key: str, default: int) -> int:
        try:
            return int(self.data.get(key, default))
        except (TypeError, ValueError):
            return default

    # Threshold scan
    @property
    def days_ahead(self) -> int:
        return self._int("days_ahead", 14)

    @property
    def reminder_days_before(self) -> int:
        """Days before the birthday to post a reminder; 0 disables reminders."""
        return max(self._int("reminder_days_before", 3), 0)

    @property
    def cleanup_grace_hours(self) -> int:
        return max(self._int("cleanup_grace_hours", 24), 0)

    # Reveal
    @property
    def celebration_channel_name(self) -> str:
        return str(self.data.get("celebration_channel_name") or "general")

    @property
    def birthday_role_name(self) -> str:
        return str(self.data.get("birthday_role_name") or "Birthday Star")

    @property
    def role_duration_hours(self) -> int:
        return max(self._int("role_duration_hours", 24), 0)

    @property
    def card_url(self) -> str | None:
        val = self.data.get("card_url")
        return str(val) if val else None

    # Event queue
    @property
    def poll_limit(self) -> int:
        return max(self._int("poll_limit", 50), 1)

    @property
    def poll_interval_seconds(self) -> float:
        try:
            return float(self.data.get("poll_interval_seconds", 300.0))
        except (TypeError, ValueError):
            return 300.0

    # Clock
    @property
    def timezone(self) -> datetime.tzinfo:
        """Timezone used to decide what "today" is; falls back to UTC."""
        name = self.data.get("timezone") or "UTC"
        try:
            return ZoneInfo(str(name))
        except (ZoneInfoNotFoundError, ValueError):
            return datetime.timezone.utc

    @property
    def daily_run_time(self) -> datetime.time:
        """Wall-clock time (in :attr:`timezone`) of the in-process daily scan."""
        raw = str(self.data.get("daily_run_time") or "00:00")
        try:
            hour, minute = (int(part) for part in raw.split(":", 1))
            return datetime.time(hour=hour, minute=minute, tzinfo=self.timezone)
        except ValueError:
            return datetime.time(hour=0, minute=0, tzinfo=self.timezone)
