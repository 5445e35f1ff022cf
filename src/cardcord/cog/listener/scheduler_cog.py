"""Background scheduler cog for Cardcord.

Runs the same entry points as ``cardcord-scheduler`` from inside the bot:
- a daily tick at the configured wall-clock time (threshold scan, then reveals)
- a polling loop that executes due scheduled events

Either surface can drive a deployment; running both is safe because every
entry point is re-entrant.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from discord.ext import commands, tasks

from cardcord.configuration.coordination_settings import CoordinationSettings
from cardcord.scheduler.scheduler_driver import SchedulerDriver
from cardcord.util.logger import get_logger

logger = get_logger("scheduler_cog")


class SchedulerCog(commands.Cog):
    """
    Drives a :class:`SchedulerDriver` on timers.

    Access via:
        bot.cogs["SchedulerCog"]
    """

    def __init__(self, bot: commands.Bot, driver: SchedulerDriver, settings: CoordinationSettings) -> None:
        self.bot = bot
        self.driver = driver
        self.settings = settings

    # ------------------------------------------------------------------
    # Cog lifecycle
    # ------------------------------------------------------------------

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        run_time = self.settings.daily_run_time
        interval = self.settings.poll_interval_seconds

        self._daily_task.change_interval(time=run_time)
        self._poll_task.change_interval(seconds=interval)

        if not self._daily_task.is_running():
            self._daily_task.start()
        if not self._poll_task.is_running():
            self._poll_task.start()
        logger.info(
            "[SCHEDULER COG] Ready (daily at %s %s, poll interval=%ds)",
            run_time.strftime("%H:%M"), run_time.tzinfo, interval,
        )

    async def cog_unload(self) -> None:
        self._daily_task.cancel()
        self._poll_task.cancel()
        logger.info("[SCHEDULER COG] Stopped")

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    @tasks.loop(hours=24)  # real schedule set in on_ready
    async def _daily_task(self) -> None:
        await self._run("daily", self.driver.run_threshold_scan)
        await self._run("reveals", self.driver.run_reveal_scan)

    @_daily_task.before_loop
    async def _before_daily(self) -> None:
        await self.bot.wait_until_ready()

    @tasks.loop(seconds=300)  # real interval set in on_ready
    async def _poll_task(self) -> None:
        await self._run("hourly", self.driver.run_queue_poll)

    @_poll_task.before_loop
    async def _before_poll(self) -> None:
        await self.bot.wait_until_ready()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(self, name: str, entry_point: Callable[[], Awaitable[object]]) -> None:
        # A raising loop body would stop the loop for good
        try:
            await entry_point()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("[SCHEDULER COG] %s run failed: %s", name, exc)


async def setup(bot: commands.Bot, driver: SchedulerDriver, settings: CoordinationSettings) -> None:
    await bot.add_cog(SchedulerCog(bot, driver, settings))
