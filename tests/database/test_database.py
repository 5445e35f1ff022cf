"""Tests for the connection manager and schema bootstrap."""

import pytest

from cardcord.database.db_connection import ConnectionManager, open_database
from cardcord.database.db_schema import SCHEMA_VERSION


async def _table_names(conn):
    async with conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'") as cursor:
        return {row["name"] for row in await cursor.fetchall()}


@pytest.mark.asyncio
async def test_open_database_creates_schema_and_closes(tmp_path):
    path = tmp_path / "nested" / "cardcord.db"

    async with open_database(path) as db:
        assert db.is_open
        assert db.path == path
        async with db.read() as conn:
            tables = await _table_names(conn)
            async with conn.execute("SELECT version FROM schema_version") as cursor:
                versions = [row["version"] for row in await cursor.fetchall()]

    assert {"birthdays", "scheduled_events", "schema_version"} <= tables
    assert versions == [SCHEMA_VERSION]
    assert path.exists()
    assert not db.is_open


@pytest.mark.asyncio
async def test_schema_initialisation_is_idempotent(tmp_path):
    path = tmp_path / "cardcord.db"
    async with open_database(path):
        pass
    async with open_database(path) as db:
        async with db.read() as conn:
            async with conn.execute("SELECT COUNT(*) AS n FROM schema_version") as cursor:
                row = await cursor.fetchone()
    assert row["n"] == 1


@pytest.mark.asyncio
async def test_open_database_closes_on_error(tmp_path):
    with pytest.raises(KeyError):
        async with open_database(tmp_path / "cardcord.db") as db:
            raise KeyError("boom")
    assert not db.is_open


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(db):
    with pytest.raises(RuntimeError):
        async with db.transaction() as conn:
            await conn.execute(
                "INSERT INTO birthdays (user_id, month, day, created_at, updated_at) VALUES ('1', 1, 1, 0, 0)"
            )
            raise RuntimeError("abort")

    async with db.read() as conn:
        async with conn.execute("SELECT COUNT(*) AS n FROM birthdays") as cursor:
            row = await cursor.fetchone()
    assert row["n"] == 0


def test_unopened_connection_raises():
    manager = ConnectionManager()
    assert not manager.is_open
    with pytest.raises(RuntimeError):
        manager.connection


@pytest.mark.asyncio
async def test_close_twice_is_safe(tmp_path):
    manager = ConnectionManager()
    await manager.open(tmp_path / "cardcord.db")
    await manager.close()
    await manager.close()
    assert not manager.is_open
