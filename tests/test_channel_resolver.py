from unittest.mock import AsyncMock

import pytest

from cardcord.coordination.channel_resolver import (
    ChannelResolver,
    MatchConfidence,
    build_topic,
    canonical_channel_name,
    parse_marker,
)
from cardcord.datatypes.discord_datatypes import UserID

from fakes import FakeGuild, FakeMember, forbidden

ALICE = UserID(111)
BOB = UserID(222)


def test_canonical_channel_name_lowercases_and_hyphenates():
    assert canonical_channel_name("alice") == "alice-birthday-card"
    assert canonical_channel_name("Big  Bob ") == "big-bob-birthday-card"


def test_marker_round_trip_and_foreign_topics():
    topic = build_topic(ALICE, "alice")
    assert "DO NOT invite them" in topic
    assert parse_marker(topic) == ALICE
    assert parse_marker("Planning channel for the party") is None
    assert parse_marker(None) is None
    assert parse_marker("") is None


def test_find_prefers_marker_over_name_and_suffix():
    guild = FakeGuild(1)
    guild.add_channel("general")
    guild.add_channel("someone-birthday-card")
    guild.add_channel("alice-birthday-card")
    marked = guild.add_channel("old-name-birthday-card", topic=build_topic(ALICE, "old-name"))

    match = ChannelResolver().find(guild, ALICE, "alice")

    assert match.channel is marked
    assert match.confidence is MatchConfidence.MARKER
    assert match.is_verified


def test_find_by_name_when_no_marker():
    guild = FakeGuild(1)
    guild.add_channel("someone-birthday-card")
    named = guild.add_channel("alice-birthday-card")

    match = ChannelResolver().find(guild, ALICE, "alice")

    assert match.channel is named
    assert match.confidence is MatchConfidence.NAME
    assert match.is_verified


def test_suffix_match_is_not_verified():
    guild = FakeGuild(1)
    guild.add_channel("general")
    stray = guild.add_channel("mystery-birthday-card")

    match = ChannelResolver().find(guild, ALICE, "alice")

    assert match.channel is stray
    assert match.confidence is MatchConfidence.SUFFIX
    assert not match.is_verified


def test_channels_marked_for_someone_else_are_never_matched():
    guild = FakeGuild(1)
    # Bob's channel happens to carry Alice's canonical name
    guild.add_channel("alice-birthday-card", topic=build_topic(BOB, "alice"))
    guild.add_channel("bob-birthday-card", topic=build_topic(BOB, "bob"))

    assert ChannelResolver().find(guild, ALICE, "alice") is None
    assert ChannelResolver().find(guild, BOB, "bob").confidence is MatchConfidence.MARKER


def test_find_without_name_uses_marker_then_suffix():
    guild = FakeGuild(1)
    assert ChannelResolver().find(guild, ALICE) is None

    guild.add_channel("alice-birthday-card")
    assert ChannelResolver().find(guild, ALICE).confidence is MatchConfidence.SUFFIX


@pytest.mark.asyncio
async def test_reconcile_renames_and_rewrites_marker_once():
    guild = FakeGuild(1)
    channel = guild.add_channel("alice-birthday-card", topic=build_topic(ALICE, "alice"))
    resolver = ChannelResolver()

    assert await resolver.reconcile(channel, ALICE, "alicia") is True
    assert channel.name == "alicia-birthday-card"
    assert parse_marker(channel.topic) == ALICE
    assert "alicia" in channel.topic
    assert channel.edits == [{"name": "alicia-birthday-card", "topic": build_topic(ALICE, "alicia")}]

    assert await resolver.reconcile(channel, ALICE, "alicia") is False
    assert len(channel.edits) == 1


@pytest.mark.asyncio
async def test_reconcile_trusts_current_marker_over_stored_name():
    guild = FakeGuild(1)
    # Name as Discord normalised it, marker already up to date
    channel = guild.add_channel("ren-birthday-card", topic=build_topic(ALICE, "ren.é"))

    assert await ChannelResolver().reconcile(channel, ALICE, "ren.é") is False
    assert channel.edits == []


@pytest.mark.asyncio
async def test_reconcile_adds_missing_marker_only():
    guild = FakeGuild(1)
    channel = guild.add_channel("alice-birthday-card")

    assert await ChannelResolver().reconcile(channel, ALICE, "alice") is True
    assert channel.edits == [{"topic": build_topic(ALICE, "alice")}]


@pytest.mark.asyncio
async def test_reconcile_swallows_platform_errors():
    guild = FakeGuild(1)
    channel = guild.add_channel("alice-birthday-card")
    channel.edit_error = forbidden()

    assert await ChannelResolver().reconcile(channel, ALICE, "alicia") is False
    assert channel.name == "alice-birthday-card"


@pytest.mark.asyncio
async def test_find_orphaned_reports_marked_channels_of_departed_members():
    alice = FakeMember(int(ALICE), "alice")
    carol = FakeMember(333, "carol")
    guild = FakeGuild(1, members=[alice], uncached=[carol])
    guild.add_channel("alice-birthday-card", topic=build_topic(ALICE, "alice"))
    guild.add_channel("carol-birthday-card", topic=build_topic(UserID(333), "carol"))
    gone = guild.add_channel("bob-birthday-card", topic=build_topic(BOB, "bob"))
    guild.add_channel("unmarked-birthday-card")

    orphans = await ChannelResolver().find_orphaned(guild)

    assert orphans == [gone]
    # Nothing is deleted
    assert gone in guild.text_channels


@pytest.mark.asyncio
async def test_find_orphaned_propagates_unexpected_errors():
    guild = FakeGuild(1)
    guild.add_channel("bob-birthday-card", topic=build_topic(BOB, "bob"))
    guild.fetch_member = AsyncMock(side_effect=forbidden())

    with pytest.raises(Exception):
        await ChannelResolver().find_orphaned(guild)
