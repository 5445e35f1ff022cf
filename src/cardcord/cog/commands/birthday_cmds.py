"""
Birthday cog: slash commands to record and look up birthdays.

- /set-birthday: Store a user's birthday (MM-DD, a YYYY-MM-DD date is accepted
  and its year ignored). Nobody can set their own birthday, otherwise the
  surprise would be spoiled.
- /get-birthday: Show a user's stored birthday (ephemeral).
"""

from __future__ import annotations

import datetime
from typing import Callable

import discord
from discord import app_commands
from discord.ext import commands

from cardcord.configuration.coordination_settings import CoordinationSettings
from cardcord.datatypes.birthday_datatypes import MonthDay
from cardcord.datatypes.discord_datatypes import UserID
from cardcord.datatypes.event_datatypes import utc_now
from cardcord.services.birthday_store import BirthdayStore, BirthdayStoreError
from cardcord.util.logger import get_logger

logger = get_logger("birthday_commands")


def coordination_start(month_day: MonthDay, today: datetime.date, days_ahead: int) -> datetime.date:
    """First date, today or later, on which the threshold scan opens the channel.

    A birthday closer than ``days_ahead`` days has already missed this year's
    scan, so the next occurrence after that is used.
    """
    lead = datetime.timedelta(days=days_ahead)
    return month_day.next_occurrence(today + lead) - lead


class BirthdayCog(commands.Cog):
    """Slash commands backed by the birthday store."""

    def __init__(
        self,
        bot: commands.Bot,
        store: BirthdayStore,
        settings: CoordinationSettings,
        *,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self.bot = bot
        self.store = store
        self.settings = settings
        self.clock = clock
        logger.info("[BIRTHDAY CMDS] Birthday cog loaded")

    def _today(self) -> datetime.date:
        return self.clock().astimezone(self.settings.timezone).date()

    @app_commands.command(name="set-birthday", description="Set a user's birthday")
    @app_commands.describe(
        user="The user whose birthday to set",
        date="Birthday in MM-DD format (YYYY-MM-DD also works, the year is ignored)",
    )
    async def set_birthday(self, interaction: discord.Interaction, user: discord.User, date: str) -> None:
        try:
            month_day = MonthDay.parse(date)
        except ValueError:
            await interaction.response.send_message(
                f"❌ Invalid date! Please use MM-DD format (e.g., 12-25).\nReceived: \"{date.strip()}\"",
                ephemeral=True,
            )
            return

        if user.id == interaction.user.id:
            await interaction.response.send_message(
                "❌ You cannot set your own birthday! Ask someone else to do it for you.",
                ephemeral=True,
            )
            return

        try:
            await self.store.set(UserID(user.id), month_day)
        except BirthdayStoreError as exc:
            logger.error("[BIRTHDAY CMDS] Failed to set birthday for %s: %s", user.id, exc)
            await interaction.response.send_message(
                "❌ An error occurred while setting the birthday. Please try again later.",
                ephemeral=True,
            )
            return

        days_ahead = self.settings.days_ahead
        start = coordination_start(month_day, self._today(), days_ahead)
        await interaction.response.send_message(
            f"🎂 **Birthday set for {user.display_name}!**\n"
            f"📅 Birthday: {month_day.display()}\n"
            f"🎉 Card coordination will start on: {start.strftime('%B')} {start.day}, {start.year}\n\n"
            f"*A private channel will be created {days_ahead} days before the birthday.*"
        )
        logger.info("[BIRTHDAY CMDS] Birthday set for %s (%s): %s", user.id, user.name, month_day)

    @app_commands.command(name="get-birthday", description="Show a user's birthday")
    @app_commands.describe(user="The user whose birthday to show")
    async def get_birthday(self, interaction: discord.Interaction, user: discord.User) -> None:
        try:
            month_day = await self.store.get(UserID(user.id))
        except BirthdayStoreError as exc:
            logger.error("[BIRTHDAY CMDS] Failed to read birthday for %s: %s", user.id, exc)
            await interaction.response.send_message(
                "❌ An error occurred while retrieving the birthday. Please try again later.",
                ephemeral=True,
            )
            return

        if month_day is None:
            await interaction.response.send_message(
                f"🤷 **{user.display_name} doesn't have a birthday set yet.**\n\n"
                f"Use `/set-birthday @{user.name} MM-DD` to set it!",
                ephemeral=True,
            )
            return

        await interaction.response.send_message(
            f"🎂 **{user.display_name}'s Birthday: {month_day.display()}**\n"
            f"📅 Date: {month_day}\n\n"
            f"*Card coordination starts {self.settings.days_ahead} days before their birthday.*",
            ephemeral=True,
        )


async def setup(bot: commands.Bot, store: BirthdayStore, settings: CoordinationSettings) -> None:
    await bot.add_cog(BirthdayCog(bot, store, settings))
