"""
Tests for the notification engine.
"""

import asyncio

from app.core.knobs import ThrottleKnobs
from app.models.diagnostics import EventType
from app.schemas.content import DayStats
from app.services import cadence
from app.services.content_store import StoreError
from app.services.notifications import Notification, NotificationEngine, build_teaser
from conftest import at_minute, make_fetched


async def events_of_type(store, event_type: str):
    return [e for e in await store.get_recent_diagnostics(500) if e.event_type == event_type]


def test_build_teaser_without_items():
    message = build_teaser(DayStats(), None)

    assert message.startswith("Today so far: nothing yet")


def test_build_teaser_lists_nonzero_categories():
    stats = DayStats(memes_found=3, news_checked=1, total_items=4, estimated_time_saved_minutes=3.5)

    message = build_teaser(stats, None)

    assert "3 memes" in message
    assert "1 news" in message
    assert "jokes" not in message
    assert "3.5 min" in message


async def test_send_teaser_marks_latest_item_seen(store, knobs):
    await store.insert(make_fetched("https://example.com/old", title="Old one"), now=at_minute(0))
    await store.insert(make_fetched("https://example.com/new", title="New one"), now=at_minute(1))
    await store.consume_pending_items(10.0)
    delivered = []

    engine = NotificationEngine(store, knobs, sink=delivered.append, first_delay_seconds=0)
    notification = await engine.send_teaser()

    assert delivered == [notification]
    assert notification.message.endswith("Latest meme: New one")
    assert (await store.get_item(notification.item_id)).is_seen is True
    assert (await store.latest_unseen_consumed()).title == "Old one"

    sent = await events_of_type(store, EventType.NOTIFICATION_SENT)
    assert sent[0].related_item_id == notification.item_id


async def test_send_teaser_with_async_sink(store, knobs):
    delivered = []

    async def sink(notification: Notification) -> None:
        delivered.append(notification)

    engine = NotificationEngine(store, knobs, sink=sink)
    await engine.send_teaser()

    assert len(delivered) == 1
    assert delivered[0].item_id is None
    assert engine.sent_count == 1


async def test_sink_failure_is_recorded(store, knobs):
    def sink(notification: Notification) -> None:
        raise RuntimeError("no display")

    engine = NotificationEngine(store, knobs, sink=sink)
    notification = await engine.send_teaser()

    assert notification is not None
    errors = await events_of_type(store, EventType.NOTIFICATION_ERROR)
    assert "no display" in errors[0].message


async def test_stats_failure_is_recorded(store, knobs, monkeypatch):
    async def broken_stats(*args, **kwargs):
        raise StoreError("database is locked")

    monkeypatch.setattr(store, "get_today_stats", broken_stats)
    engine = NotificationEngine(store, knobs)

    assert await engine.send_teaser() is None
    errors = await events_of_type(store, EventType.NOTIFICATION_ERROR)
    assert "Failed to get stats" in errors[0].message


def test_interval_follows_throttle_level():
    knobs = ThrottleKnobs(throttle_level=1)
    engine = NotificationEngine(store=None, knobs=knobs)

    assert engine.cycle_interval_seconds() == cadence.total_cycle_minutes(1) * 60

    knobs.set_throttle_level(9)
    assert engine.cycle_interval_seconds() == cadence.total_cycle_minutes(9) * 60


async def test_run_sends_after_first_delay_and_stops(store, knobs):
    shutdown = asyncio.Event()
    delivered = []
    engine = NotificationEngine(store, knobs, shutdown_event=shutdown, sink=delivered.append, first_delay_seconds=0)

    task = asyncio.create_task(engine.run())
    loop = asyncio.get_running_loop()
    deadline = loop.time() + 5
    while not delivered and loop.time() < deadline:
        await asyncio.sleep(0.01)

    shutdown.set()
    await asyncio.wait_for(task, timeout=5)

    assert len(delivered) == 1
    messages = [e.message for e in await events_of_type(store, EventType.NOTIFICATION_ENGINE)]
    assert "NotificationEngine started" in messages
    assert "NotificationEngine shutting down" in messages


async def test_run_exits_during_first_delay(store, knobs):
    shutdown = asyncio.Event()
    engine = NotificationEngine(store, knobs, shutdown_event=shutdown, first_delay_seconds=60)

    task = asyncio.create_task(engine.run())
    await asyncio.sleep(0.05)
    shutdown.set()
    await asyncio.wait_for(task, timeout=5)

    assert engine.sent_count == 0


async def test_run_survives_a_failed_cycle(store, knobs, monkeypatch):
    shutdown = asyncio.Event()
    delivered = []
    engine = NotificationEngine(store, knobs, shutdown_event=shutdown, sink=delivered.append, first_delay_seconds=0)
    monkeypatch.setattr(engine, "cycle_interval_seconds", lambda: 0.01)

    real_send = engine.send_teaser
    calls = []

    async def flaky_send():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("renderer crashed")
        return await real_send()

    monkeypatch.setattr(engine, "send_teaser", flaky_send)

    task = asyncio.create_task(engine.run())
    loop = asyncio.get_running_loop()
    deadline = loop.time() + 5
    while not delivered and loop.time() < deadline:
        await asyncio.sleep(0.01)

    shutdown.set()
    await asyncio.wait_for(task, timeout=5)

    assert len(delivered) >= 1
    errors = await events_of_type(store, EventType.NOTIFICATION_ERROR)
    assert any("renderer crashed" in e.message for e in errors)
