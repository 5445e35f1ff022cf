"""
Result aggregation for scheduler runs.

Per-guild and per-event failures are absorbed by the scheduler so one bad
guild never aborts a scan; these types keep those outcomes around so callers
(and tests) can still see partial failure instead of only a log line.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from cardcord.datatypes.discord_datatypes import GuildID, UserID


class OutcomeStatus(str, Enum):
    CREATED = "created"
    RECONCILED = "reconciled"
    REVEALED = "revealed"
    SKIPPED_NOT_MEMBER = "skipped_not_member"
    FAILED = "failed"


@dataclass
class GuildOutcome:
    """What happened for one (subject, guild) pair during a scan."""

    guild_id: GuildID
    subject_id: UserID
    status: OutcomeStatus
    detail: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED


@dataclass
class ScanReport:
    """Outcomes collected over one scheduler entry point."""

    task: str
    subjects: List[UserID] = field(default_factory=list)
    outcomes: List[GuildOutcome] = field(default_factory=list)

    def add(self, outcome: GuildOutcome) -> None:
        self.outcomes.append(outcome)

    def with_status(self, status: OutcomeStatus) -> List[GuildOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is status]

    @property
    def failures(self) -> List[GuildOutcome]:
        return self.with_status(OutcomeStatus.FAILED)

    def summary(self) -> str:
        counts = {status.value: len(self.with_status(status)) for status in OutcomeStatus}
        parts = ", ".join(f"{name}={count}" for name, count in counts.items() if count)
        return f"{self.task}: {len(self.subjects)} subject(s)" + (f" ({parts})" if parts else "")


@dataclass
class PollResult:
    """Ids of the events attempted by one :meth:`EventQueue.poll` call."""

    succeeded: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)
