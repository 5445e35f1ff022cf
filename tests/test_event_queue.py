import asyncio
import datetime
import sqlite3

import pytest

from cardcord.database.db_connection import ConnectionManager
from cardcord.datatypes.event_datatypes import EventKind
from cardcord.repositories.scheduled_event_repo import scheduled_event_repo
from cardcord.scheduler.event_queue import EventQueue, EventQueueError

from fakes import FIXED_NOW


def _later(**kwargs) -> datetime.datetime:
    return FIXED_NOW + datetime.timedelta(**kwargs)


@pytest.mark.asyncio
async def test_schedule_persists_pending_event(db, clock):
    queue = EventQueue(db, clock=clock)

    event = await queue.schedule(EventKind.ROLE_REVOKE, _later(hours=24), {"guild_id": "1", "subject_id": "2"})

    assert event.id is not None
    assert event.kind == "role-revoke"
    assert event.fire_at == _later(hours=24)
    assert event.payload == {"guild_id": "1", "subject_id": "2"}
    assert event.completed is False
    assert event.attempts == 0
    assert event.created_at == FIXED_NOW
    assert [e.id for e in await queue.pending()] == [event.id]


@pytest.mark.asyncio
async def test_schedule_never_deduplicates(db, clock):
    queue = EventQueue(db, clock=clock)
    first = await queue.schedule("custom", _later(hours=1), {"a": 1})
    second = await queue.schedule("custom", _later(hours=1), {"a": 1})
    assert first.id != second.id
    assert len(await queue.pending()) == 2


@pytest.mark.asyncio
async def test_poll_skips_events_that_are_not_due(db, clock):
    queue = EventQueue(db, clock=clock)
    calls = []

    async def handler(event):
        calls.append(event.id)

    queue.register(EventKind.ROLE_REVOKE, handler)
    await queue.schedule(EventKind.ROLE_REVOKE, _later(hours=24))

    result = await queue.poll(_later(hours=23))

    assert result.attempted == 0
    assert calls == []


@pytest.mark.asyncio
async def test_successful_event_runs_exactly_once(db, clock):
    queue = EventQueue(db, clock=clock)
    calls = []

    async def handler(event):
        calls.append(event.payload["subject_id"])

    queue.register(EventKind.ROLE_REVOKE, handler)
    event = await queue.schedule(EventKind.ROLE_REVOKE, _later(hours=24), {"subject_id": "42"})

    clock.advance(hours=25)
    first = await queue.poll()
    second = await queue.poll()

    assert first.succeeded == [event.id]
    assert second.attempted == 0
    assert calls == ["42"]

    stored = await queue.get(event.id)
    assert stored.completed is True
    assert stored.completed_at == clock.now
    assert stored.attempts == 0


@pytest.mark.asyncio
async def test_failed_event_is_retried_on_next_poll(db, clock):
    queue = EventQueue(db, clock=clock)
    outcomes = iter([RuntimeError("Discord unavailable"), RuntimeError("still down"), None])

    async def flaky(event):
        error = next(outcomes)
        if error is not None:
            raise error

    queue.register(EventKind.SEND_REMINDER, flaky)
    event = await queue.schedule(EventKind.SEND_REMINDER, _later(minutes=1))
    now = _later(minutes=5)

    assert (await queue.poll(now)).failed == [event.id]
    assert (await queue.poll(now)).failed == [event.id]
    stored = await queue.get(event.id)
    assert stored.completed is False
    assert stored.attempts == 2
    assert "still down" in stored.last_error

    assert (await queue.poll(now)).succeeded == [event.id]
    stored = await queue.get(event.id)
    assert stored.completed is True
    assert stored.attempts == 2


@pytest.mark.asyncio
async def test_one_failure_does_not_block_the_batch(db, clock):
    queue = EventQueue(db, clock=clock)
    ran = []

    async def broken(event):
        raise ValueError("bad payload")

    async def fine(event):
        ran.append(event.id)

    queue.register_many({"broken": broken, "fine": fine})
    bad = await queue.schedule("broken", _later(seconds=1))
    good = await queue.schedule("fine", _later(seconds=2))

    result = await queue.poll(_later(minutes=1))

    assert result.failed == [bad.id]
    assert result.succeeded == [good.id]
    assert ran == [good.id]


@pytest.mark.asyncio
async def test_unknown_kind_counts_as_failure(db, clock):
    queue = EventQueue(db, clock=clock)
    event = await queue.schedule("nobody-handles-this", _later(seconds=1))

    result = await queue.poll(_later(minutes=1))

    assert result.failed == [event.id]
    stored = await queue.get(event.id)
    assert stored.attempts == 1
    assert "LookupError" in stored.last_error


@pytest.mark.asyncio
async def test_poll_limit_and_fire_order(db, clock):
    queue = EventQueue(db, clock=clock)
    order = []

    async def handler(event):
        order.append(event.payload["n"])

    queue.register("tick", handler)
    for n, minutes in enumerate([30, 10, 20]):
        await queue.schedule("tick", _later(minutes=minutes), {"n": n})

    first = await queue.poll(_later(hours=1), limit=2)
    second = await queue.poll(_later(hours=1), limit=2)

    assert first.attempted == 2
    assert second.attempted == 1
    assert order == [1, 2, 0]


@pytest.mark.asyncio
async def test_cancellation_propagates_and_leaves_event_pending(db, clock):
    queue = EventQueue(db, clock=clock)

    async def cancelled(event):
        raise asyncio.CancelledError()

    queue.register("slow", cancelled)
    event = await queue.schedule("slow", _later(seconds=1))

    with pytest.raises(asyncio.CancelledError):
        await queue.poll(_later(minutes=1))

    stored = await queue.get(event.id)
    assert stored.completed is False
    assert stored.attempts == 0


@pytest.mark.asyncio
async def test_store_errors_are_wrapped(clock):
    queue = EventQueue(ConnectionManager(), clock=clock)
    with pytest.raises(EventQueueError):
        await queue.schedule("x", FIXED_NOW)
    with pytest.raises(EventQueueError):
        await queue.poll(FIXED_NOW)


@pytest.mark.asyncio
async def test_outcome_write_errors_do_not_abort_the_batch(db, clock, monkeypatch):
    queue = EventQueue(db, clock=clock)
    ran = []

    async def handler(event):
        ran.append(event.id)

    queue.register("tick", handler)
    first = await queue.schedule("tick", _later(seconds=1))
    second = await queue.schedule("tick", _later(seconds=2))

    real_mark_completed = scheduled_event_repo.mark_completed

    async def locked_for_first(conn, event_id, completed_at):
        if event_id == first.id:
            raise sqlite3.OperationalError("database is locked")
        await real_mark_completed(conn, event_id, completed_at)

    monkeypatch.setattr(scheduled_event_repo, "mark_completed", locked_for_first)

    result = await queue.poll(_later(minutes=1))

    assert ran == [first.id, second.id]
    assert result.failed == [first.id]
    assert result.succeeded == [second.id]
    assert (await queue.get(first.id)).completed is False
    assert (await queue.get(second.id)).completed is True


@pytest.mark.asyncio
async def test_failure_that_cannot_be_recorded_still_counts_as_failed(db, clock, monkeypatch):
    queue = EventQueue(db, clock=clock)

    async def broken(event):
        raise ValueError("bad payload")

    async def locked(*args):
        raise sqlite3.OperationalError("database is locked")

    queue.register("broken", broken)
    event = await queue.schedule("broken", _later(seconds=1))
    monkeypatch.setattr(scheduled_event_repo, "record_failure", locked)

    result = await queue.poll(_later(minutes=1))

    assert result.failed == [event.id]
    assert (await queue.get(event.id)).attempts == 0


@pytest.mark.asyncio
async def test_cancel_removes_only_pending_events(db, clock):
    queue = EventQueue(db, clock=clock)

    async def handler(event):
        pass

    queue.register("tick", handler)
    done = await queue.schedule("tick", _later(seconds=1))
    await queue.poll(_later(minutes=1))
    pending = await queue.schedule("tick", _later(hours=1))

    assert await queue.cancel([done.id, pending.id]) == 1
    assert await queue.pending() == []
    assert (await queue.get(done.id)).completed is True
    assert await queue.cancel([]) == 0


@pytest.mark.asyncio
async def test_cancel_wraps_store_errors(clock):
    queue = EventQueue(ConnectionManager(), clock=clock)
    with pytest.raises(EventQueueError):
        await queue.cancel([1])
