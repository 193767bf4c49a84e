"""
Tests for runtime wiring: startup maintenance, catch-up consumption and
shutdown of the background loops.
"""

import asyncio
from datetime import timedelta

import pytest

from app.core.config import settings
from app.core.knobs import ThrottleKnobs
from app.db.base import utcnow
from app.services import cadence
from app.services.runtime import Runtime
from conftest import FakeProvider, make_fetched


async def test_first_resume_only_seeds_last_active(runtime):
    result = await runtime.resume()

    assert result.elapsed_minutes == 0.0
    assert result.consumed is None
    assert await runtime.store.get_last_active() is not None


async def test_resume_consumes_for_elapsed_time(store, http_client):
    knobs = ThrottleKnobs(throttle_level=9, thread_count=2)
    runtime = Runtime(store=store, knobs=knobs, client=http_client, providers=[])
    for i in range(10):
        await store.insert(make_fetched(f"https://example.com/{i}", "joke"))

    now = utcnow()
    await store.set_last_active(now - timedelta(minutes=2))

    result = await runtime.resume(now=now)

    expected_budget = cadence.consumption_budget_for_elapsed(2.0, 9, 2)
    assert result.elapsed_minutes == pytest.approx(2.0, abs=0.01)
    assert result.budget_minutes == pytest.approx(expected_budget, abs=0.01)
    # 2 minutes * 0.91 * 2 threads = 3.64 minutes of 0.3-minute jokes
    assert result.consumed.items_consumed == 10
    assert await store.pending_count() == 0


async def test_resume_with_clock_going_backwards(runtime):
    now = utcnow()
    await runtime.store.set_last_active(now + timedelta(hours=1))

    result = await runtime.resume(now=now)

    assert result.elapsed_minutes == 0.0
    assert result.budget_minutes == 0.0
    assert result.consumed is None


async def test_start_without_background_loops_prunes_and_resumes(runtime, monkeypatch):
    monkeypatch.setattr(settings, "PRUNE_ON_STARTUP", True)

    await runtime.start(background_loops=False)

    assert not runtime.running
    events = [e.event_type for e in await runtime.store.get_recent_diagnostics(50)]
    assert "prune" in events
    assert await runtime.store.get_last_active() is not None


async def test_start_and_stop_background_loops(database_url, monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_NOTIFICATIONS", True)
    monkeypatch.setattr(settings, "NOTIFICATION_FIRST_DELAY_SECONDS", 60.0)
    provider = FakeProvider("memes", "meme", [make_fetched("https://example.com/loop")])

    runtime = await Runtime.create(database_url=database_url, providers=[provider])
    await runtime.start(background_loops=True)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + 5
    while runtime.scheduler.cycles_run == 0 and loop.time() < deadline:
        await asyncio.sleep(0.01)

    assert runtime.running
    assert runtime.scheduler.is_running
    assert provider.calls == 1

    await asyncio.wait_for(runtime.stop(), timeout=10)

    assert not runtime.running
    assert runtime.client.is_closed
    assert runtime.shutdown_event.is_set()
