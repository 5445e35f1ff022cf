import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from cardcord.cog.commands.birthday_cmds import BirthdayCog, coordination_start
from cardcord.datatypes.birthday_datatypes import MonthDay
from cardcord.datatypes.discord_datatypes import UserID
from cardcord.services.birthday_store import BirthdayStore, BirthdayStoreError


def _interaction(user_id=1):
    return SimpleNamespace(
        user=SimpleNamespace(id=user_id),
        response=SimpleNamespace(send_message=AsyncMock()),
    )


def _user(user_id=42, name="alice", display_name="Alice"):
    return SimpleNamespace(id=user_id, name=name, display_name=display_name)


@pytest.fixture
def cog(db, settings, clock):
    return BirthdayCog(MagicMock(), BirthdayStore(db), settings, clock=clock)


def test_coordination_start():
    today = datetime.date(2025, 2, 24)
    assert coordination_start(MonthDay(3, 10), today, 14) == datetime.date(2025, 2, 24)
    assert coordination_start(MonthDay(12, 25), today, 14) == datetime.date(2025, 12, 11)
    # Too close for this year's scan
    assert coordination_start(MonthDay(3, 1), today, 14) == datetime.date(2026, 2, 15)


@pytest.mark.asyncio
async def test_set_birthday_stores_and_replies(cog):
    interaction = _interaction()

    await cog.set_birthday.callback(cog, interaction, _user(), "03-10")

    assert await cog.store.get(UserID(42)) == MonthDay(3, 10)
    content = interaction.response.send_message.await_args.args[0]
    assert "Birthday set for Alice" in content
    assert "March 10" in content
    assert "February 24, 2025" in content


@pytest.mark.asyncio
async def test_set_birthday_accepts_full_dates(cog):
    await cog.set_birthday.callback(cog, _interaction(), _user(), "1990-12-25")
    assert await cog.store.get(UserID(42)) == MonthDay(12, 25)


@pytest.mark.asyncio
async def test_set_birthday_rejects_invalid_date(cog):
    interaction = _interaction()

    await cog.set_birthday.callback(cog, interaction, _user(), "02-30")

    interaction.response.send_message.assert_awaited_once()
    assert interaction.response.send_message.await_args.kwargs["ephemeral"] is True
    assert await cog.store.get(UserID(42)) is None


@pytest.mark.asyncio
async def test_users_cannot_set_their_own_birthday(cog):
    interaction = _interaction(user_id=42)

    await cog.set_birthday.callback(cog, interaction, _user(user_id=42), "03-10")

    content = interaction.response.send_message.await_args.args[0]
    assert "cannot set your own birthday" in content
    assert await cog.store.get(UserID(42)) is None


@pytest.mark.asyncio
async def test_set_birthday_reports_store_errors(settings, clock):
    store = MagicMock()
    store.set = AsyncMock(side_effect=BirthdayStoreError("down"))
    cog = BirthdayCog(MagicMock(), store, settings, clock=clock)
    interaction = _interaction()

    await cog.set_birthday.callback(cog, interaction, _user(), "03-10")

    assert "error occurred" in interaction.response.send_message.await_args.args[0]


@pytest.mark.asyncio
async def test_get_birthday(cog):
    interaction = _interaction()
    await cog.get_birthday.callback(cog, interaction, _user())
    assert "doesn't have a birthday set" in interaction.response.send_message.await_args.args[0]

    await cog.store.set(UserID(42), MonthDay(7, 4))
    interaction = _interaction()
    await cog.get_birthday.callback(cog, interaction, _user())
    content = interaction.response.send_message.await_args.args[0]
    assert "July 4" in content
    assert "07-04" in content
    assert interaction.response.send_message.await_args.kwargs["ephemeral"] is True
