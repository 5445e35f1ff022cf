"""
Standalone scheduler entry point for external timers.

Meant for cron, systemd timers or CI schedules that start a fresh process,
run one task and exit::

    cardcord-scheduler daily     # threshold scan (coordination channels)
    cardcord-scheduler hourly    # execute due scheduled events
    cardcord-scheduler reveals   # reveal today's birthdays
    cardcord-scheduler orphans   # report channels whose subject left
    cardcord-scheduler all       # daily, hourly and reveals in that order

Exit status is 0 on success and 1 on failure or an unknown task.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Optional, Sequence

import discord
from dotenv import load_dotenv

from cardcord.configuration.app_configuration import app_config
from cardcord.database.db_connection import open_database
from cardcord.scheduler.scheduler_driver import TASK_SELECTORS, build_driver
from cardcord.util.logger import get_logger

logger = get_logger("external_scheduler")


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    return intents


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cardcord-scheduler",
        description="Run one Cardcord scheduler task and exit.",
    )
    parser.add_argument(
        "task",
        nargs="?",
        default="daily",
        help=f"Task to run ({', '.join(TASK_SELECTORS)}); defaults to daily",
    )
    return parser


async def wait_until_connected(client: discord.Client, connect_task: asyncio.Task) -> None:
    """Wait for the guild cache to fill, failing fast if the gateway connection dies first."""
    ready_task = asyncio.create_task(client.wait_until_ready())
    try:
        done, _ = await asyncio.wait({connect_task, ready_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        ready_task.cancel()

    if ready_task not in done:
        exc = connect_task.exception()
        raise exc or RuntimeError("Discord connection closed before the client became ready")


async def run_scheduler(task: str, token: str) -> None:
    """Connect, run ``task`` once, disconnect.

    Raises:
        Exception: Anything that prevents the task from completing.
    """
    client = discord.Client(intents=build_intents())
    async with client:
        await client.login(token)
        connect_task = asyncio.create_task(client.connect(reconnect=False))
        try:
            await wait_until_connected(client, connect_task)
            logger.info("[EXTERNAL SCHEDULER] Connected as %s to %d guild(s)", client.user, len(client.guilds))

            async with open_database(app_config.database_path) as db:
                driver = build_driver(client, db, app_config.coordination)
                await driver.run_task(task)
        finally:
            await client.close()
            if not connect_task.done():
                connect_task.cancel()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console script entry point; returns the process exit status."""
    args = build_parser().parse_args(argv)
    task = args.task

    if task not in TASK_SELECTORS:
        logger.error("[EXTERNAL SCHEDULER] Unknown task type: %s", task)
        logger.info("[EXTERNAL SCHEDULER] Available tasks: %s", ", ".join(TASK_SELECTORS))
        return 1

    load_dotenv()
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Scheduler cannot run.")
        return 1

    logger.info("[EXTERNAL SCHEDULER] Starting %s task", task)
    try:
        asyncio.run(run_scheduler(task, token))
    except KeyboardInterrupt:
        logger.info("[EXTERNAL SCHEDULER] Interrupted")
        return 1
    except Exception as exc:
        logger.critical("[EXTERNAL SCHEDULER] %s task failed: %s", task, exc)
        return 1

    logger.info("[EXTERNAL SCHEDULER] %s task completed successfully", task)
    return 0


if __name__ == "__main__":
    sys.exit(main())
