"""
Entry points invoked by the external timer and by the bot's own loops.

Each entry point runs to completion and returns a report. Failures for one
(subject, guild) pair are logged and recorded in the report; only a failing
store query escapes, because without the data there is nothing to do.
"""

from __future__ import annotations

import asyncio
import datetime
from typing import Awaitable, Callable, Dict, Optional

import discord

from cardcord.configuration.coordination_settings import CoordinationSettings
from cardcord.coordination.lifecycle import CoordinationLifecycle
from cardcord.database.db_connection import ConnectionManager
from cardcord.datatypes.discord_datatypes import GuildID, UserID
from cardcord.datatypes.event_datatypes import utc_now
from cardcord.datatypes.outcome_datatypes import GuildOutcome, OutcomeStatus, PollResult, ScanReport
from cardcord.scheduler.event_queue import EventQueue
from cardcord.services.birthday_store import BirthdayStore
from cardcord.util.logger import get_logger

logger = get_logger("scheduler_driver")

GuildOperation = Callable[[discord.Guild, UserID], Awaitable[GuildOutcome]]

TASK_SELECTORS = ("daily", "hourly", "reveals", "orphans", "all")


class SchedulerDriver:
    """Compose the store, the lifecycle and the queue into runnable tasks."""

    def __init__(
        self,
        client: discord.Client,
        store: BirthdayStore,
        queue: EventQueue,
        lifecycle: CoordinationLifecycle,
        settings: CoordinationSettings,
        *,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self.client = client
        self.store = store
        self.queue = queue
        self.lifecycle = lifecycle
        self.settings = settings
        self.clock = clock

    def today(self) -> datetime.date:
        """Current date in the configured scheduler timezone."""
        return self.clock().astimezone(self.settings.timezone).date()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_threshold_scan(self, today: Optional[datetime.date] = None) -> ScanReport:
        """Start coordination for every subject whose birthday is ``days_ahead`` away."""
        today = today or self.today()
        days_ahead = self.settings.days_ahead
        report = ScanReport(task="threshold")
        report.subjects = await self.store.scan_all_matching_offset(days_ahead, today)

        if not report.subjects:
            logger.info("[SCHEDULER] No birthdays found for %d days from %s", days_ahead, today)
            return report

        logger.info("[SCHEDULER] Found %d upcoming birthday(s)", len(report.subjects))

        async def start(guild: discord.Guild, subject_id: UserID) -> GuildOutcome:
            return await self.lifecycle.start_coordination(guild, subject_id, days_ahead)

        for subject_id in report.subjects:
            await self._for_each_guild(report, subject_id, start)

        logger.info("[SCHEDULER] %s", report.summary())
        return report

    async def run_reveal_scan(self, today: Optional[datetime.date] = None) -> ScanReport:
        """Reveal the card for every subject whose birthday is today."""
        today = today or self.today()
        report = ScanReport(task="reveal")
        report.subjects = await self.store.scan_all_matching_exact(today)

        if not report.subjects:
            logger.info("[SCHEDULER] No birthdays to reveal on %s", today)
            return report

        logger.info("[SCHEDULER] Found %d birthday(s) to reveal today", len(report.subjects))
        for subject_id in report.subjects:
            await self._for_each_guild(report, subject_id, self.lifecycle.reveal)

        logger.info("[SCHEDULER] %s", report.summary())
        return report

    async def run_queue_poll(self, now: Optional[datetime.datetime] = None) -> PollResult:
        """Execute due scheduled events."""
        return await self.queue.poll(now or self.clock(), self.settings.poll_limit)

    async def run_orphan_report(self) -> Dict[GuildID, list]:
        """Log coordination channels whose subject has left the guild."""
        orphans: Dict[GuildID, list] = {}
        for guild in self.client.guilds:
            try:
                found = await self.lifecycle.resolver.find_orphaned(guild)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("[SCHEDULER] Orphan sweep failed in guild %s: %s", guild.name, exc)
                continue
            if found:
                orphans[GuildID(guild.id)] = [channel.name for channel in found]
        logger.info("[SCHEDULER] Orphaned coordination channels: %d guild(s)", len(orphans))
        return orphans

    async def run_task(self, selector: str) -> None:
        """
        Run the entry point(s) for a trigger selector.

        Raises:
            ValueError: For an unknown selector.
        """
        if selector == "daily":
            await self.run_threshold_scan()
        elif selector == "hourly":
            await self.run_queue_poll()
        elif selector == "reveals":
            await self.run_reveal_scan()
        elif selector == "orphans":
            await self.run_orphan_report()
        elif selector == "all":
            await self.run_threshold_scan()
            await self.run_queue_poll()
            await self.run_reveal_scan()
        else:
            raise ValueError(f"Unknown task type: {selector} (available: {', '.join(TASK_SELECTORS)})")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _for_each_guild(self, report: ScanReport, subject_id: UserID, operation: GuildOperation) -> None:
        for guild in self.client.guilds:
            try:
                outcome = await operation(guild, subject_id)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "[SCHEDULER] %s failed for %s in guild %s: %s",
                    report.task, subject_id, guild.name, exc,
                )
                outcome = GuildOutcome(GuildID(guild.id), subject_id, OutcomeStatus.FAILED, str(exc))
            report.add(outcome)


def build_driver(
    client: discord.Client,
    db: ConnectionManager,
    settings: CoordinationSettings,
    *,
    clock: Callable[[], datetime.datetime] = utc_now,
) -> SchedulerDriver:
    """Wire a driver, its store, queue and lifecycle around one open database."""
    store = BirthdayStore(db)
    queue = EventQueue(db, clock=clock)
    lifecycle = CoordinationLifecycle(client, queue, settings, clock=clock)
    lifecycle.register_handlers()
    return SchedulerDriver(client, store, queue, lifecycle, settings, clock=clock)
