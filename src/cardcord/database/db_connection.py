"""
Database connection management.

SQLite performs best with a **single long-lived connection** per process:
pragmas are applied once and the page cache stays warm. Writes are serialised
with a semaphore so async tasks queue up instead of fighting SQLite's busy
timeout; reads share the connection directly (WAL mode).

There is no module-level connection. The process entry points create one
with :func:`open_database` and hand the resulting :class:`ConnectionManager`
to ``BirthdayStore`` and ``EventQueue``::

    async with open_database(app_config.database_path) as db:
        store = BirthdayStore(db)
        queue = EventQueue(db)
        ...
    # connection flushed and closed here, even on error
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from cardcord.database.db_schema import SchemaManager
from cardcord.util.logger import get_logger

logger = get_logger("database_connection")

# Pragmas applied once when the connection is opened
_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",    # safe with WAL; faster than FULL
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",     # the bot and the scheduler CLI may overlap
]


class ConnectionManager:
    """
    Wrapper around a single aiosqlite connection.

    * Reads: ``async with read()`` (or ``connection``); WAL allows concurrent reads.
    * Writes: ``async with transaction()``; serialised, auto-rollback on error.
    """

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, path: Path) -> None:
        """
        Open the database and apply pragmas.

        Args:
            path: Path to the SQLite database file.
        """
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists, ignoring")
            return

        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await self._conn.commit()

        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Flush WAL and close the connection. Safe to call twice."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except Exception:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Connection closed")

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw aiosqlite connection.

        Raises:
            RuntimeError: If the connection has not been opened yet.
        """
        if self._conn is None:
            raise RuntimeError(
                "ConnectionManager: connection is not open. "
                "Use `async with open_database(path)` at startup."
            )
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Serialised write transaction: commits on clean exit, rolls back if an
        exception is raised.

        Raises:
            RuntimeError: If the connection is not open.
        """
        conn = self.connection

        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Symmetrical counterpart of :meth:`transaction` for reads; no locking."""
        yield self.connection


@asynccontextmanager
async def open_database(path: Path) -> AsyncIterator[ConnectionManager]:
    """
    Open a connection, create the schema and guarantee release on exit.

    Args:
        path: Path to the SQLite database file (created if missing).

    Yields:
        ConnectionManager: The open, initialised connection manager.
    """
    manager = ConnectionManager()
    await manager.open(path)
    try:
        await SchemaManager.initialize_schema(manager.connection)
        yield manager
    finally:
        await manager.close()
