"""
Data structures for persisted one-shot scheduled events.

Timestamps are timezone-aware UTC datetimes in Python and INTEGER unix
seconds in SQLite (see :mod:`cardcord.repositories.scheduled_event_repo`).
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class EventKind(str, Enum):
    """Kinds of deferred work produced by the coordination lifecycle.

    The queue stores kinds as plain text and dispatches on the string value,
    so additional kinds can be registered without extending this enum.
    """

    ROLE_REVOKE = "role-revoke"
    SEND_REMINDER = "send-reminder"
    CLEANUP_CHANNEL = "cleanup-channel"

    def __str__(self) -> str:
        return self.value


def kind_value(kind: "EventKind | str") -> str:
    """Normalise an enum member or raw string to the stored kind text."""
    return kind.value if isinstance(kind, EventKind) else str(kind)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass
class ScheduledEvent:
    """
    A persisted deferred action.

    Attributes:
        id: Row id assigned by the store.
        kind: Stored kind text (an :class:`EventKind` value for built-in kinds).
        fire_at: Earliest time the event may execute.
        payload: Kind-specific data (guild id, subject id, role name, ...).
        completed: Terminal flag; completed events are never executed again.
        attempts: Number of failed executions so far.
        last_error: Message of the most recent failure, if any.
    """

    id: int
    kind: str
    fire_at: datetime.datetime
    payload: Dict[str, Any] = field(default_factory=dict)
    completed: bool = False
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    last_attempt_at: Optional[datetime.datetime] = None
    completed_at: Optional[datetime.datetime] = None

    def is_due(self, now: datetime.datetime) -> bool:
        return not self.completed and self.fire_at <= now
