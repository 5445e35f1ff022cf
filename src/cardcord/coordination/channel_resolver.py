"""
Locate the private coordination channel of a subject inside a guild.

Each coordination channel carries its subject twice:

* a **marker** in the topic, ``Birthday card for user ID: <id>``, which
  survives renames and is authoritative;
* a **name**, ``<username>-birthday-card``, which drifts whenever the subject
  changes their username.

Lookups go marker → exact name → generic ``-birthday-card`` suffix. A channel
whose marker names somebody else is never returned for this subject, whatever
its name, so unrelated coordination channels cannot be picked up by the name
tiers. Suffix matches are low confidence: :attr:`ChannelMatch.is_verified` is
False for them and destructive callers must not act on them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import discord

from cardcord.datatypes.discord_datatypes import UserID
from cardcord.util.logger import get_logger

logger = get_logger("channel_resolver")

CHANNEL_SUFFIX = "-birthday-card"
MARKER_PREFIX = "Birthday card for user ID:"
_MARKER_RE = re.compile(re.escape(MARKER_PREFIX) + r"\s*(\d+)")


class MatchConfidence(int, Enum):
    """How a channel was matched; higher is more trustworthy."""

    SUFFIX = 1
    NAME = 2
    MARKER = 3


@dataclass
class ChannelMatch:
    channel: discord.TextChannel
    confidence: MatchConfidence

    @property
    def is_verified(self) -> bool:
        """Marker or exact-name matches may be acted on destructively."""
        return self.confidence >= MatchConfidence.NAME


def canonical_channel_name(display_name: str) -> str:
    """Channel name requested for ``display_name``; Discord may store it normalised further."""
    slug = re.sub(r"\s+", "-", display_name.strip().lower())
    return f"{slug}{CHANNEL_SUFFIX}"


def build_topic(subject_id: UserID, display_name: str) -> str:
    return f"🎂 {MARKER_PREFIX} {subject_id} ({display_name}) - DO NOT invite them to this channel!"


def parse_marker(topic: Optional[str]) -> Optional[UserID]:
    """Return the subject id encoded in a channel topic, if any."""
    if not topic:
        return None
    match = _MARKER_RE.search(topic)
    return UserID(match.group(1)) if match else None


class ChannelResolver:
    """Find and self-heal coordination channels."""

    def find(
        self,
        guild: discord.Guild,
        subject_id: UserID,
        current_display_name: Optional[str] = None,
    ) -> Optional[ChannelMatch]:
        """
        Return the best coordination channel match for ``subject_id``.

        Args:
            guild: Guild to search (its cached text channels).
            subject_id: The subject whose channel is wanted.
            current_display_name: Current username, used for the name tier.

        Returns:
            ChannelMatch | None: The highest-confidence candidate, or None.
        """
        subject_id = UserID(subject_id)
        expected_name = canonical_channel_name(current_display_name) if current_display_name else None

        best: Optional[ChannelMatch] = None
        for channel in guild.text_channels:
            owner = parse_marker(channel.topic)
            if owner is not None and owner != subject_id:
                continue

            if owner == subject_id:
                confidence = MatchConfidence.MARKER
            elif expected_name is not None and channel.name == expected_name:
                confidence = MatchConfidence.NAME
            elif channel.name.endswith(CHANNEL_SUFFIX):
                confidence = MatchConfidence.SUFFIX
            else:
                continue

            if best is None or confidence > best.confidence:
                best = ChannelMatch(channel, confidence)
                if confidence is MatchConfidence.MARKER:
                    break

        return best

    async def reconcile(
        self,
        channel: discord.TextChannel,
        subject_id: UserID,
        current_display_name: str,
    ) -> bool:
        """
        Bring the channel name and marker in line with ``current_display_name``.

        The topic records the username the channel was last named after, so
        an up-to-date topic means nothing to do even when Discord stored the
        name in a different form than :func:`canonical_channel_name` gives.

        Best effort: platform errors are logged and swallowed.

        Returns:
            bool: True if an update was sent to Discord.
        """
        expected_name = canonical_channel_name(current_display_name)
        expected_topic = build_topic(UserID(subject_id), current_display_name)
        if channel.topic == expected_topic:
            return False

        changes = {"topic": expected_topic}
        if channel.name != expected_name:
            changes["name"] = expected_name

        old_name = channel.name
        try:
            await channel.edit(**changes, reason=f"Updated for username change to {current_display_name}")
        except discord.HTTPException as exc:
            logger.warning(
                "[CHANNEL RESOLVER] Could not update channel %s for %s: %s",
                old_name, subject_id, exc,
            )
            return False

        logger.info(
            "[CHANNEL RESOLVER] Reconciled channel %s -> %s (%s)",
            old_name, expected_name, ", ".join(sorted(changes)),
        )
        return True

    async def find_orphaned(self, guild: discord.Guild) -> List[discord.TextChannel]:
        """
        Coordination channels whose marked subject is no longer a member.

        Channels without a marker are not reported: there is nobody to check.
        Nothing is deleted here.
        """
        orphans: List[discord.TextChannel] = []
        for channel in guild.text_channels:
            owner = parse_marker(channel.topic)
            if owner is None:
                continue
            if guild.get_member(owner.to_int()) is not None:
                continue
            try:
                await guild.fetch_member(owner.to_int())
            except discord.NotFound:
                logger.info(
                    "[CHANNEL RESOLVER] Orphaned channel %s for user %s who left guild %s",
                    channel.name, owner, guild.name,
                )
                orphans.append(channel)
        return orphans
