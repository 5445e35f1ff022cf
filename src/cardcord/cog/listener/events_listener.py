"""Event listener Cog for Cardcord.

Handles the bot connecting: sets the presence and syncs the slash command
tree once per process.
"""

import discord
from discord.ext import commands

from cardcord.util.logger import get_logger

logger = get_logger("events_listener")


class EventsListenerCog(commands.Cog):
    """Handles Discord bot lifecycle events."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self._synced = False
        logger.info("[EVENTS LISTENER] Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self) -> None:
        """Set bot presence and register slash commands."""
        if not self.bot.user:
            logger.warning("[EVENTS LISTENER] Bot partially connected - user info not yet available.")
            return

        await self.bot.change_presence(
            status=discord.Status.online,
            activity=discord.Activity(type=discord.ActivityType.watching, name="the calendar 🎂"),
        )
        logger.info("Bot connected as %s (ID: %s)", self.bot.user, self.bot.user.id)

        # on_ready fires again after every reconnect
        if self._synced:
            return
        try:
            synced = await self.bot.tree.sync()
        except discord.HTTPException as exc:
            logger.error("[EVENTS LISTENER] Failed to sync application commands: %s", exc)
            return
        self._synced = True
        logger.info("[EVENTS LISTENER] Synced %d application command(s)", len(synced))

    @commands.Cog.listener(name="on_guild_join")
    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info("[EVENTS LISTENER] Bot joined guild: %s (ID: %s)", guild.name, guild.id)

    @commands.Cog.listener(name="on_guild_remove")
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        logger.info("[EVENTS LISTENER] Bot removed from guild: %s (ID: %s)", guild.name, guild.id)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(EventsListenerCog(bot))
