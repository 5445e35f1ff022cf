"""
Persistent storage for scheduled events.

Timestamps are stored as INTEGER unix seconds (seconds since the epoch)
so ``fire_at <= now`` is a plain integer comparison.
"""

from __future__ import annotations

import datetime
import json
from typing import Any, Dict, List, Optional

import aiosqlite

from cardcord.datatypes.event_datatypes import ScheduledEvent

_COLUMNS = (
    "id, kind, fire_at, payload, completed, attempts, last_error, "
    "created_at, last_attempt_at, completed_at"
)


def to_unix(value: datetime.datetime) -> int:
    """Convert an aware (or UTC-naive) datetime to unix seconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return int(value.timestamp())


def from_unix(value: Optional[int]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)


def _row_to_event(row: aiosqlite.Row) -> ScheduledEvent:
    return ScheduledEvent(
        id=row["id"],
        kind=row["kind"],
        fire_at=from_unix(row["fire_at"]),
        payload=json.loads(row["payload"] or "{}"),
        completed=bool(row["completed"]),
        attempts=row["attempts"],
        last_error=row["last_error"],
        created_at=from_unix(row["created_at"]),
        last_attempt_at=from_unix(row["last_attempt_at"]),
        completed_at=from_unix(row["completed_at"]),
    )


class ScheduledEventRepo:
    """Low-level CRUD for the ``scheduled_events`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(
        conn: aiosqlite.Connection,
        kind: str,
        fire_at: datetime.datetime,
        payload: Dict[str, Any],
        created_at: datetime.datetime,
    ) -> int:
        """Insert a new pending event and return its row id."""
        cursor = await conn.execute(
            """
            INSERT INTO scheduled_events (kind, fire_at, payload, completed, attempts, created_at)
            VALUES (?, ?, ?, 0, 0, ?)
            """,
            (kind, to_unix(fire_at), json.dumps(payload, sort_keys=True), to_unix(created_at)),
        )
        return cursor.lastrowid

    @staticmethod
    async def mark_completed(
        conn: aiosqlite.Connection,
        event_id: int,
        completed_at: datetime.datetime,
    ) -> None:
        await conn.execute(
            "UPDATE scheduled_events SET completed = 1, completed_at = ?, last_attempt_at = ? WHERE id = ?",
            (to_unix(completed_at), to_unix(completed_at), event_id),
        )

    @staticmethod
    async def record_failure(
        conn: aiosqlite.Connection,
        event_id: int,
        error: str,
        attempted_at: datetime.datetime,
    ) -> None:
        """Bump ``attempts`` and remember the error; the row stays pending."""
        await conn.execute(
            """
            UPDATE scheduled_events
            SET attempts = attempts + 1, last_error = ?, last_attempt_at = ?
            WHERE id = ? AND completed = 0
            """,
            (error, to_unix(attempted_at), event_id),
        )

    @staticmethod
    async def delete_pending(conn: aiosqlite.Connection, event_ids: List[int]) -> int:
        """Remove pending rows by id; completed rows are kept."""
        if not event_ids:
            return 0
        placeholders = ", ".join("?" for _ in event_ids)
        cursor = await conn.execute(
            f"DELETE FROM scheduled_events WHERE completed = 0 AND id IN ({placeholders})",
            tuple(event_ids),
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, event_id: int) -> Optional[ScheduledEvent]:
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM scheduled_events WHERE id = ?",
            (event_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_event(row) if row is not None else None

    @staticmethod
    async def get_due(
        conn: aiosqlite.Connection,
        now: datetime.datetime,
        limit: int,
    ) -> List[ScheduledEvent]:
        """Return up to ``limit`` pending rows with ``fire_at <= now``, oldest first."""
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM scheduled_events "
            "WHERE completed = 0 AND fire_at <= ? "
            "ORDER BY fire_at, id LIMIT ?",
            (to_unix(now), limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_event(row) for row in rows]

    @staticmethod
    async def get_pending(conn: aiosqlite.Connection) -> List[ScheduledEvent]:
        """All not-yet-completed rows regardless of fire time."""
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM scheduled_events WHERE completed = 0 ORDER BY fire_at, id"
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_event(row) for row in rows]


# Module-level singleton
scheduled_event_repo = ScheduledEventRepo()
