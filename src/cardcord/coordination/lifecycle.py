"""
Per-subject coordination lifecycle.

``NO_COORDINATION → ACTIVE → REVEALED`` for every (subject, guild) pair. The
state is never stored: it is inferred from whether a coordination channel
exists (:func:`infer_state`), so every operation can be re-run after a crash
or a duplicate trigger without creating a second channel.

Side effects that must happen later (removing the birthday role, reminding
collaborators, sweeping a leftover channel) are written to the
:class:`~cardcord.scheduler.event_queue.EventQueue`; the handlers that execute
them live here too.

Exceptions from Discord propagate out of :meth:`start_coordination` and
:meth:`reveal`; the scheduler driver catches them per guild. Absence (not a
member, no role, no celebration channel, no coordination channel) is normal
control flow and never raises.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

import discord

from cardcord.configuration.coordination_settings import CoordinationSettings
from cardcord.coordination import messages
from cardcord.coordination.channel_resolver import (
    ChannelMatch,
    ChannelResolver,
    build_topic,
    canonical_channel_name,
)
from cardcord.datatypes.discord_datatypes import GuildID, UserID
from cardcord.datatypes.event_datatypes import EventKind, ScheduledEvent, utc_now
from cardcord.datatypes.outcome_datatypes import GuildOutcome, OutcomeStatus
from cardcord.scheduler.event_queue import EventHandler, EventQueue, EventQueueError
from cardcord.util.logger import get_logger

logger = get_logger("coordination_lifecycle")


class CoordinationState(str, Enum):
    NO_COORDINATION = "no_coordination"
    ACTIVE = "active"
    REVEALED = "revealed"


def infer_state(match: Optional[ChannelMatch]) -> CoordinationState:
    """Derive the lifecycle state from a channel lookup result.

    ``REVEALED`` is never observed: the reveal deletes the channel, which puts
    the pair straight back into ``NO_COORDINATION``.
    """
    return CoordinationState.ACTIVE if match is not None else CoordinationState.NO_COORDINATION


async def fetch_member(guild: discord.Guild, subject_id: UserID) -> Optional[discord.Member]:
    """Return the subject's member object, or None when they are not in the guild."""
    user_id = UserID(subject_id).to_int()
    if member := guild.get_member(user_id):
        return member
    try:
        return await guild.fetch_member(user_id)
    except discord.NotFound:
        return None


class CoordinationLifecycle:
    """
    Drives channel creation, the reveal and the deferred clean-up work.

    Attributes:
        client: Discord client used to look guilds up again from event payloads.
        queue: Event queue that receives deferred work.
        settings: Coordination section of the app config.
        resolver: Channel lookup and self-healing.
        clock: Returns the current aware UTC datetime.
    """

    def __init__(
        self,
        client: discord.Client,
        queue: EventQueue,
        settings: CoordinationSettings,
        *,
        resolver: Optional[ChannelResolver] = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self.client = client
        self.queue = queue
        self.settings = settings
        self.resolver = resolver or ChannelResolver()
        self.clock = clock

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def current_state(self, guild: discord.Guild, subject_id: UserID) -> CoordinationState:
        member = await fetch_member(guild, subject_id)
        name = member.name if member else None
        return infer_state(self.resolver.find(guild, subject_id, name))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start_coordination(
        self,
        guild: discord.Guild,
        subject_id: UserID,
        days_until: Optional[int] = None,
    ) -> GuildOutcome:
        """
        Open the private coordination channel for ``subject_id`` in ``guild``.

        Re-entrant: when a channel already exists it is only reconciled with
        the subject's current username. If the follow-ups or the kickoff
        message cannot be stored or sent, the new channel and any queued
        follow-ups are removed again and the error propagates.

        Args:
            guild: Guild to coordinate in.
            subject_id: Whose birthday it is.
            days_until: Days until the birthday (defaults to ``days_ahead``).

        Returns:
            GuildOutcome: ``CREATED``, ``RECONCILED`` or ``SKIPPED_NOT_MEMBER``.
        """
        subject_id = UserID(subject_id)
        guild_id = GuildID(guild.id)
        days_until = self.settings.days_ahead if days_until is None else days_until

        member = await fetch_member(guild, subject_id)
        if member is None:
            return GuildOutcome(guild_id, subject_id, OutcomeStatus.SKIPPED_NOT_MEMBER)

        existing = self.resolver.find(guild, subject_id, member.name)
        if infer_state(existing) is CoordinationState.ACTIVE:
            logger.info(
                "[LIFECYCLE] Channel %s already exists in guild %s",
                existing.channel.name, guild.name,
            )
            await self.resolver.reconcile(existing.channel, subject_id, member.name)
            return GuildOutcome(guild_id, subject_id, OutcomeStatus.RECONCILED, existing.channel.name)

        channel_name = canonical_channel_name(member.name)
        overwrites = {
            guild.default_role: discord.PermissionOverwrite(view_channel=True, send_messages=True),
            member: discord.PermissionOverwrite(view_channel=False),
        }
        if guild.me is not None:
            overwrites[guild.me] = discord.PermissionOverwrite(
                view_channel=True, send_messages=True, manage_channels=True
            )

        channel = await guild.create_text_channel(
            channel_name,
            topic=build_topic(subject_id, member.name),
            overwrites=overwrites,
            reason=f"Birthday card coordination for {member.name}",
        )

        # A channel only counts as started once follow-ups and kickoff are both in place
        scheduled: List[ScheduledEvent] = []
        try:
            await self._schedule_followups(guild_id, subject_id, days_until, scheduled)
            await channel.send(messages.kickoff_message(member.display_name, days_until))
        except Exception:
            logger.error(
                "[LIFECYCLE] Setting up channel %s in guild %s failed, rolling back",
                channel.name, guild.name,
            )
            await self._roll_back(channel, scheduled)
            raise

        logger.info("[LIFECYCLE] Created coordination channel %s in guild %s", channel.name, guild.name)
        return GuildOutcome(guild_id, subject_id, OutcomeStatus.CREATED, channel.name)

    async def reveal(self, guild: discord.Guild, subject_id: UserID) -> GuildOutcome:
        """
        Celebrate publicly, hand out the temporary role and remove the channel.

        Safe to run twice: a missing coordination channel is skipped. A second
        run does post the celebration message again.

        Returns:
            GuildOutcome: ``REVEALED`` or ``SKIPPED_NOT_MEMBER``.
        """
        subject_id = UserID(subject_id)
        guild_id = GuildID(guild.id)

        member = await fetch_member(guild, subject_id)
        if member is None:
            return GuildOutcome(guild_id, subject_id, OutcomeStatus.SKIPPED_NOT_MEMBER)

        done = []

        celebration = discord.utils.get(guild.text_channels, name=self.settings.celebration_channel_name)
        if celebration is not None:
            await celebration.send(messages.celebration_message(subject_id, self.settings.card_url))
            done.append("celebrated")
        else:
            logger.info(
                "[LIFECYCLE] No #%s channel in guild %s, skipping celebration post",
                self.settings.celebration_channel_name, guild.name,
            )

        role = discord.utils.get(guild.roles, name=self.settings.birthday_role_name)
        if role is not None:
            await member.add_roles(role, reason="Birthday card revealed")
            logger.info("[LIFECYCLE] Added %s role to %s", role.name, member.name)
            await self.queue.schedule(
                EventKind.ROLE_REVOKE,
                self.clock() + datetime.timedelta(hours=self.settings.role_duration_hours),
                {
                    "guild_id": str(guild_id),
                    "subject_id": str(subject_id),
                    "role_id": str(role.id),
                    "role_name": role.name,
                },
            )
            done.append("role")

        match = self.resolver.find(guild, subject_id, member.name)
        if match is not None and match.is_verified:
            if await self._delete_channel(match.channel, "Birthday card revealed - cleaning up coordination channel"):
                done.append("channel deleted")
        elif match is not None:
            logger.warning(
                "[LIFECYCLE] Channel %s only matched by suffix for %s, not deleting",
                match.channel.name, subject_id,
            )

        return GuildOutcome(guild_id, subject_id, OutcomeStatus.REVEALED, ", ".join(done) or None)

    # ------------------------------------------------------------------
    # Deferred work
    # ------------------------------------------------------------------

    async def _schedule_followups(
        self,
        guild_id: GuildID,
        subject_id: UserID,
        days_until: int,
        scheduled: List[ScheduledEvent],
    ) -> None:
        """Queue the reminder and cleanup events, appending each to ``scheduled`` as it is stored."""
        now = self.clock()
        payload = {"guild_id": str(guild_id), "subject_id": str(subject_id)}

        reminder_days = self.settings.reminder_days_before
        if 0 < reminder_days < days_until:
            scheduled.append(await self.queue.schedule(
                EventKind.SEND_REMINDER,
                now + datetime.timedelta(days=days_until - reminder_days),
                {**payload, "days_left": reminder_days},
            ))

        scheduled.append(await self.queue.schedule(
            EventKind.CLEANUP_CHANNEL,
            now + datetime.timedelta(days=days_until, hours=self.settings.cleanup_grace_hours),
            payload,
        ))

    async def _roll_back(self, channel: discord.TextChannel, scheduled: List[ScheduledEvent]) -> None:
        """Undo a half-finished start so the next scan creates the channel again."""
        if scheduled:
            try:
                await self.queue.cancel([event.id for event in scheduled])
            except EventQueueError as exc:
                logger.error("[LIFECYCLE] Could not cancel follow-ups for %s: %s", channel.name, exc)
        try:
            await self._delete_channel(channel, "Birthday card coordination setup failed")
        except discord.HTTPException as exc:
            logger.error("[LIFECYCLE] Could not remove half-created channel %s: %s", channel.name, exc)

    def event_handlers(self) -> Dict[EventKind, EventHandler]:
        return {
            EventKind.ROLE_REVOKE: self.handle_role_revoke,
            EventKind.SEND_REMINDER: self.handle_send_reminder,
            EventKind.CLEANUP_CHANNEL: self.handle_cleanup_channel,
        }

    def register_handlers(self) -> None:
        self.queue.register_many(self.event_handlers())

    def _guild_for(self, event: ScheduledEvent) -> Optional[discord.Guild]:
        guild = self.client.get_guild(int(event.payload["guild_id"]))
        if guild is None:
            logger.warning(
                "[LIFECYCLE] Guild %s not available for event #%d (%s), nothing to do",
                event.payload["guild_id"], event.id, event.kind,
            )
        return guild

    async def handle_role_revoke(self, event: ScheduledEvent) -> None:
        guild = self._guild_for(event)
        if guild is None:
            return
        subject_id = UserID(event.payload["subject_id"])
        member = await fetch_member(guild, subject_id)
        if member is None:
            logger.info("[LIFECYCLE] %s left guild %s before role removal", subject_id, guild.name)
            return

        role = None
        if role_id := event.payload.get("role_id"):
            role = guild.get_role(int(role_id))
        if role is None:
            role = discord.utils.get(guild.roles, name=event.payload.get("role_name"))
        if role is None:
            logger.info("[LIFECYCLE] Birthday role no longer exists in guild %s", guild.name)
            return

        await member.remove_roles(role, reason="Birthday role expired")
        logger.info("[LIFECYCLE] Removed %s role from %s", role.name, member.name)

    async def handle_send_reminder(self, event: ScheduledEvent) -> None:
        guild = self._guild_for(event)
        if guild is None:
            return
        subject_id = UserID(event.payload["subject_id"])
        member = await fetch_member(guild, subject_id)
        if member is None:
            return

        match = self.resolver.find(guild, subject_id, member.name)
        if match is None or not match.is_verified:
            logger.info("[LIFECYCLE] No coordination channel for %s in %s, reminder dropped", subject_id, guild.name)
            return

        days_left = int(event.payload.get("days_left", self.settings.reminder_days_before))
        await match.channel.send(messages.reminder_message(member.display_name, days_left))

    async def handle_cleanup_channel(self, event: ScheduledEvent) -> None:
        guild = self._guild_for(event)
        if guild is None:
            return
        subject_id = UserID(event.payload["subject_id"])
        member = await fetch_member(guild, subject_id)

        # Without a member there is no name to match, so only the marker counts
        match = self.resolver.find(guild, subject_id, member.name if member else None)
        if match is None or not match.is_verified:
            return
        await self._delete_channel(match.channel, "Birthday passed - removing leftover coordination channel")

    async def _delete_channel(self, channel: discord.TextChannel, reason: str) -> bool:
        try:
            await channel.delete(reason=reason)
        except discord.NotFound:
            logger.info("[LIFECYCLE] Channel %s was already gone", channel.name)
            return False
        logger.info("[LIFECYCLE] Deleted coordination channel %s", channel.name)
        return True
