"""
Birthday persistence boundary used by the scheduler and the slash commands.

Scans are a full-table read filtered with :mod:`cardcord.scheduler.date_matcher`.
That is fine for a few thousand rows; the ``(month, day)`` index on the table
is there for an equality query should the scale ever need it.
"""

from __future__ import annotations

import datetime
import sqlite3
from typing import List, Optional

from cardcord.database.db_connection import ConnectionManager
from cardcord.datatypes.birthday_datatypes import BirthdayRecord, MonthDay
from cardcord.datatypes.discord_datatypes import UserID
from cardcord.repositories.birthday_repo import birthday_repo
from cardcord.scheduler import date_matcher
from cardcord.util.logger import get_logger

logger = get_logger("birthday_store")


class BirthdayStoreError(RuntimeError):
    """Raised when birthday data cannot be read or written."""


class BirthdayStore:
    """Get/set birthdays and find the users whose date crosses a threshold."""

    def __init__(self, db: ConnectionManager) -> None:
        self.db = db

    async def get_record(self, subject_id: UserID) -> Optional[BirthdayRecord]:
        try:
            async with self.db.read() as conn:
                return await birthday_repo.get(conn, UserID(subject_id))
        except (sqlite3.Error, RuntimeError) as exc:
            logger.error("[BIRTHDAY STORE] Failed to read birthday for %s: %s", subject_id, exc)
            raise BirthdayStoreError("Failed to retrieve birthday from database") from exc

    async def get(self, subject_id: UserID) -> Optional[MonthDay]:
        """Return the stored month/day for ``subject_id`` or ``None``."""
        record = await self.get_record(subject_id)
        return record.month_day if record else None

    async def set(
        self,
        subject_id: UserID,
        month_day: MonthDay,
        timezone_hint: Optional[str] = None,
    ) -> None:
        """Insert or overwrite the birthday of ``subject_id``."""
        try:
            async with self.db.transaction() as conn:
                await birthday_repo.upsert(conn, UserID(subject_id), month_day, timezone_hint)
        except (sqlite3.Error, RuntimeError) as exc:
            logger.error("[BIRTHDAY STORE] Failed to save birthday for %s: %s", subject_id, exc)
            raise BirthdayStoreError("Failed to save birthday to database") from exc
        logger.info("[BIRTHDAY STORE] Birthday for %s set to %s", subject_id, month_day)

    async def all_records(self) -> List[BirthdayRecord]:
        try:
            async with self.db.read() as conn:
                return await birthday_repo.get_all(conn)
        except (sqlite3.Error, RuntimeError) as exc:
            logger.error("[BIRTHDAY STORE] Failed to scan birthdays: %s", exc)
            raise BirthdayStoreError("Failed to retrieve birthdays from database") from exc

    async def scan_all_matching_offset(self, offset_days: int, today: datetime.date) -> List[UserID]:
        """Users whose birthday falls exactly ``offset_days`` after ``today``."""
        records = await self.all_records()
        return [
            record.subject_id
            for record in records
            if date_matcher.matches_offset(record.month_day, today, offset_days)
        ]

    async def scan_all_matching_exact(self, today: datetime.date) -> List[UserID]:
        """Users whose birthday is ``today``."""
        records = await self.all_records()
        return [
            record.subject_id
            for record in records
            if date_matcher.matches_exact(record.month_day, today)
        ]
