"""
Cardcord Discord Bot
====================

Long-running bot that records birthdays through slash commands, opens a
hidden coordination channel ahead of each one, reveals the card on the day
and works through the scheduled clean-up jobs.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. CARDCORD_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("CARDCORD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from discord.ext import commands
from dotenv import load_dotenv

from cardcord.configuration.app_configuration import app_config
from cardcord.database.db_connection import ConnectionManager, open_database
from cardcord.scheduler.scheduler_driver import SchedulerDriver, build_driver
from cardcord.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Returns
    -------
    str
        Discord bot token extracted from the loaded environment.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Construct the Discord intents required for Cardcord.

    Returns
    -------
    discord.Intents
        Intents enabling guild and member events. Members are needed to tell
        whether a birthday subject is still part of a guild.
    """
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    return intents


def create_bot() -> commands.Bot:
    """Instantiate the Discord bot. Cogs are added by :func:`load_cogs`."""
    return commands.Bot(command_prefix=commands.when_mentioned, intents=build_intents())


async def load_cogs(bot: commands.Bot, driver: SchedulerDriver) -> None:
    """Register all operational cogs with the provided bot.

    Parameters
    ----------
    bot:
        Bot object that should receive the Cardcord cogs.
    driver:
        Scheduler driver bound to the open database.
    """
    from cardcord.cog.commands import birthday_cmds
    from cardcord.cog.listener import events_listener, scheduler_cog

    settings = driver.settings
    await events_listener.setup(bot)
    await scheduler_cog.setup(bot, driver, settings)
    await birthday_cmds.setup(bot, driver.store, settings)

    logger.info("All cogs loaded successfully.")


async def start_bot(bot: commands.Bot, token: str) -> None:
    """Start the Discord bot and handle lifecycle logging around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def run_bot_session(db: ConnectionManager, token: str) -> int:
    """Run the bot against an open database, returning an exit code."""
    exit_code = 0
    bot = create_bot()
    try:
        driver = build_driver(bot, db, app_config.coordination)
        await load_cogs(bot, driver)
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        if not bot.is_closed():
            await bot.close()
    return exit_code


async def async_main() -> int:
    """Bootstrap the database and the bot, returning an exit code.

    Returns
    -------
    int
        Process exit code reflecting success or failure of initialization.
    """
    token = load_environment()

    try:
        logger.info("Initializing database at %s...", app_config.database_path)
        async with open_database(app_config.database_path) as db:
            exit_code = await run_bot_session(db, token)
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    logger.info("Shutdown complete.")
    return exit_code


def main() -> int:
    """Entrypoint that orchestrates the async runtime and returns the process code."""
    logger.info("Starting Cardcord…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
