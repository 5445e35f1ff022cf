"""
Persisted one-shot event queue.

Events live in the ``scheduled_events`` table, so anything scheduled survives
restarts and can be executed by whichever process polls next (the bot's
polling loop or the ``cardcord-scheduler hourly`` CLI run).

Semantics
---------
- ``schedule`` always inserts; callers own deduplication.
- ``poll`` executes due events one at a time. Success marks the row completed
  (terminal, never run again). Failure bumps ``attempts`` and records the
  error; the row stays eligible and is retried on the next poll. There is no
  backoff curve: the poll interval is the retry interval.
- A failing handler never prevents the rest of the batch from running, and
  neither does a failed write of an event's outcome: such an event is
  counted as failed and left for the next poll.
"""

from __future__ import annotations

import asyncio
import datetime
import sqlite3
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from cardcord.database.db_connection import ConnectionManager
from cardcord.datatypes.event_datatypes import EventKind, ScheduledEvent, kind_value, utc_now
from cardcord.datatypes.outcome_datatypes import PollResult
from cardcord.repositories.scheduled_event_repo import scheduled_event_repo
from cardcord.util.logger import get_logger

logger = get_logger("event_queue")

EventHandler = Callable[[ScheduledEvent], Awaitable[Any]]

DEFAULT_POLL_LIMIT = 50


class EventQueueError(RuntimeError):
    """Raised when the event table itself cannot be read or written."""


class EventQueue:
    """
    Schedule deferred work and execute it once it is due.

    Attributes:
        db: Connection manager shared with the rest of the process.
        handlers: Registered handlers keyed by stored kind text.
        clock: Returns "now" for ``created_at`` and attempt timestamps.
    """

    def __init__(
        self,
        db: ConnectionManager,
        *,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self.db = db
        self.clock = clock
        self.handlers: Dict[str, EventHandler] = {}

    # ------------------------------------------------------------------
    # Handler registry
    # ------------------------------------------------------------------

    def register(self, kind: EventKind | str, handler: EventHandler) -> None:
        """Register (or replace) the handler for ``kind``."""
        key = kind_value(kind)
        if key in self.handlers:
            logger.debug("[EVENT QUEUE] Replacing handler for kind %s", key)
        self.handlers[key] = handler

    def register_many(self, handlers: Mapping[EventKind | str, EventHandler]) -> None:
        for kind, handler in handlers.items():
            self.register(kind, handler)

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    async def schedule(
        self,
        kind: EventKind | str,
        fire_at: datetime.datetime,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ScheduledEvent:
        """Persist a new pending event and return it."""
        created_at = self.clock()
        try:
            async with self.db.transaction() as conn:
                event_id = await scheduled_event_repo.insert(
                    conn, kind_value(kind), fire_at, dict(payload or {}), created_at
                )
                event = await scheduled_event_repo.get(conn, event_id)
        except (sqlite3.Error, RuntimeError) as exc:
            raise EventQueueError(f"Failed to schedule {kind_value(kind)} event") from exc

        logger.info(
            "[EVENT QUEUE] Scheduled %s event #%d for %s",
            event.kind, event.id, event.fire_at.isoformat(),
        )
        return event

    async def cancel(self, event_ids: Sequence[int]) -> int:
        """
        Drop pending events that should no longer run.

        Raises:
            EventQueueError: If the rows cannot be removed.
        """
        try:
            async with self.db.transaction() as conn:
                removed = await scheduled_event_repo.delete_pending(conn, list(event_ids))
        except (sqlite3.Error, RuntimeError) as exc:
            raise EventQueueError("Failed to cancel scheduled events") from exc
        logger.info("[EVENT QUEUE] Cancelled %d pending event(s)", removed)
        return removed

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    async def get(self, event_id: int) -> Optional[ScheduledEvent]:
        async with self.db.read() as conn:
            return await scheduled_event_repo.get(conn, event_id)

    async def pending(self) -> List[ScheduledEvent]:
        async with self.db.read() as conn:
            return await scheduled_event_repo.get_pending(conn)

    async def poll(
        self,
        now: Optional[datetime.datetime] = None,
        limit: int = DEFAULT_POLL_LIMIT,
    ) -> PollResult:
        """
        Execute up to ``limit`` due events sequentially.

        Args:
            now: Cut-off for ``fire_at``; defaults to the queue clock.
            limit: Maximum number of events attempted in this call.

        Returns:
            PollResult: Ids of the events that succeeded and failed.

        Raises:
            EventQueueError: If the due events cannot be loaded.
        """
        now = now or self.clock()
        try:
            async with self.db.read() as conn:
                due = await scheduled_event_repo.get_due(conn, now, limit)
        except (sqlite3.Error, RuntimeError) as exc:
            raise EventQueueError("Failed to load due events") from exc

        result = PollResult()
        if not due:
            logger.debug("[EVENT QUEUE] No due events at %s", now.isoformat())
            return result

        logger.info("[EVENT QUEUE] Processing %d due event(s)", len(due))
        for event in due:
            if await self._execute(event):
                result.succeeded.append(event.id)
            else:
                result.failed.append(event.id)

        logger.info(
            "[EVENT QUEUE] Poll finished: %d succeeded, %d failed",
            len(result.succeeded), len(result.failed),
        )
        return result

    async def _execute(self, event: ScheduledEvent) -> bool:
        handler = self.handlers.get(event.kind)
        try:
            if handler is None:
                raise LookupError(f"No handler registered for kind {event.kind!r}")
            await handler(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            logger.error(
                "[EVENT QUEUE] Event #%d (%s) failed on attempt %d: %s",
                event.id, event.kind, event.attempts + 1, error,
            )
            try:
                async with self.db.transaction() as conn:
                    await scheduled_event_repo.record_failure(conn, event.id, error, self.clock())
            except (sqlite3.Error, RuntimeError) as store_exc:
                logger.error("[EVENT QUEUE] Could not record failure of event #%d: %s", event.id, store_exc)
            return False

        try:
            async with self.db.transaction() as conn:
                await scheduled_event_repo.mark_completed(conn, event.id, self.clock())
        except (sqlite3.Error, RuntimeError) as store_exc:
            # Row stays pending, so the handler runs again on the next poll
            logger.error(
                "[EVENT QUEUE] Event #%d (%s) ran but could not be marked completed: %s",
                event.id, event.kind, store_exc,
            )
            return False
        logger.debug("[EVENT QUEUE] Event #%d (%s) completed", event.id, event.kind)
        return True
