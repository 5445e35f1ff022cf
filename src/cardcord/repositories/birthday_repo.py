"""
Persistent storage for birthdays.

Rows are keyed by user id (TEXT, so snowflakes survive any JSON hop) and hold
the month and day as separate integers. Timestamps are unix seconds.
"""

from __future__ import annotations

import datetime
import time
from typing import List, Optional

import aiosqlite

from cardcord.datatypes.birthday_datatypes import BirthdayRecord, MonthDay
from cardcord.datatypes.discord_datatypes import UserID


def _from_unix(value: Optional[int]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)


def _row_to_record(row: aiosqlite.Row) -> BirthdayRecord:
    return BirthdayRecord(
        subject_id=UserID(row["user_id"]),
        month_day=MonthDay(row["month"], row["day"]),
        timezone_hint=row["timezone_hint"],
        created_at=_from_unix(row["created_at"]),
        updated_at=_from_unix(row["updated_at"]),
    )


class BirthdayRepo:
    """Low-level CRUD for the ``birthdays`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def upsert(
        conn: aiosqlite.Connection,
        user_id: UserID,
        month_day: MonthDay,
        timezone_hint: Optional[str] = None,
    ) -> None:
        """Insert or overwrite a user's birthday, keeping the original ``created_at``."""
        now = int(time.time())
        await conn.execute(
            """
            INSERT INTO birthdays (user_id, month, day, timezone_hint, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                month         = excluded.month,
                day           = excluded.day,
                timezone_hint = excluded.timezone_hint,
                updated_at    = excluded.updated_at
            """,
            (str(user_id), month_day.month, month_day.day, timezone_hint, now, now),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get(conn: aiosqlite.Connection, user_id: UserID) -> Optional[BirthdayRecord]:
        async with conn.execute(
            "SELECT user_id, month, day, timezone_hint, created_at, updated_at "
            "FROM birthdays WHERE user_id = ?",
            (str(user_id),),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_record(row) if row is not None else None

    @staticmethod
    async def get_all(conn: aiosqlite.Connection) -> List[BirthdayRecord]:
        """Full-collection scan, ordered by user id for stable iteration."""
        async with conn.execute(
            "SELECT user_id, month, day, timezone_hint, created_at, updated_at "
            "FROM birthdays ORDER BY user_id"
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]


# Module-level singleton
birthday_repo = BirthdayRepo()
