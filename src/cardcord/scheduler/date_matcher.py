"""Month/day matching against "today" plus an offset.

Pure functions, no I/O. Years never take part in a comparison because
birthdays recur. A stored Feb 29 only ever matches an actual Feb 29: in
non-leap years it matches nothing, neither Feb 28 nor Mar 1.
"""

from __future__ import annotations

import datetime

from cardcord.datatypes.birthday_datatypes import MonthDay


def target_date(today: datetime.date, offset_days: int) -> datetime.date:
    """Calendar date ``offset_days`` after ``today`` (negative looks back)."""
    return today + datetime.timedelta(days=offset_days)


def matches_offset(stored: MonthDay, today: datetime.date, offset_days: int) -> bool:
    """True when ``today + offset_days`` falls on the stored month and day."""
    target = target_date(today, offset_days)
    return stored.month == target.month and stored.day == target.day


def matches_exact(stored: MonthDay, today: datetime.date) -> bool:
    """True when ``today`` itself falls on the stored month and day."""
    return matches_offset(stored, today, 0)
