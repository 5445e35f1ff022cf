"""
Calendar-only birthday values.

A stored birthday has no year: it recurs every year, so only the month and
day are kept. February accepts the 29th so leap-day birthdays can be stored;
whether such a value ever matches in a non-leap year is decided by
:mod:`cardcord.scheduler.date_matcher` (it does not).
"""

from __future__ import annotations

import calendar
import datetime
import re
from dataclasses import dataclass
from typing import Optional

from cardcord.datatypes.discord_datatypes import UserID

# Index 0 is unused so the table can be indexed by month number
DAYS_IN_MONTH = (0, 31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

_MONTH_DAY_RE = re.compile(r"^(?:(\d{4})-)?(\d{2})-(\d{2})$")


@dataclass(frozen=True, order=True)
class MonthDay:
    """A month/day pair, always valid for at least one calendar year."""

    month: int
    day: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")
        if not 1 <= self.day <= DAYS_IN_MONTH[self.month]:
            raise ValueError(f"Day {self.day} is invalid for month {self.month}")

    @classmethod
    def parse(cls, text: str) -> "MonthDay":
        """Parse ``MM-DD`` (or ``YYYY-MM-DD``, the year is discarded).

        Raises:
            ValueError: If the text is not in one of the accepted formats or
                names a day that does not exist in that month.
        """
        match = _MONTH_DAY_RE.match(text.strip()) if isinstance(text, str) else None
        if match is None:
            raise ValueError(f"Expected MM-DD or YYYY-MM-DD, got {text!r}")
        return cls(int(match.group(2)), int(match.group(3)))

    @classmethod
    def from_date(cls, value: datetime.date) -> "MonthDay":
        return cls(value.month, value.day)

    def is_valid(self, year: int) -> bool:
        """Whether this month/day exists in ``year`` (only Feb 29 can fail)."""
        return not (self.month == 2 and self.day == 29 and not calendar.isleap(year))

    def next_occurrence(self, today: datetime.date) -> datetime.date:
        """Return the first date on or after ``today`` with this month/day.

        Feb 29 skips ahead to the next leap year.
        """
        year = today.year
        while True:
            if self.is_valid(year):
                candidate = datetime.date(year, self.month, self.day)
                if candidate >= today:
                    return candidate
            year += 1

    def display(self) -> str:
        """Human readable form, e.g. ``March 10``."""
        return f"{calendar.month_name[self.month]} {self.day}"

    def __str__(self) -> str:
        return f"{self.month:02d}-{self.day:02d}"


@dataclass
class BirthdayRecord:
    """A single row of the ``birthdays`` table."""

    subject_id: UserID
    month_day: MonthDay
    timezone_hint: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None
