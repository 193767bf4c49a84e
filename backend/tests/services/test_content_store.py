"""
Tests for the ContentStore.

Tests cover:
- Deduplication (sequential and concurrent)
- Pending counts and consumption
- Listing, seen / saved flags
- Pruning of earlier session days
- Statistics and buffer summary
- Diagnostic events and app state
- Logging while the store lock is held
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from app.models.app_state import LAST_ACTIVE_TIMESTAMP_KEY
from app.models.content import ARCHIVED_TITLE, stable_id_for_url
from app.models.diagnostics import DiagnosticEvent, EventType, Severity
from app.services.content_store import (
    ContentStore,
    InsertOutcome,
    ItemNotFoundError,
    StoreError,
    buffer_health,
)
from conftest import at_minute, make_fetched


async def _consume_all(store: ContentStore) -> None:
    await store.consume_pending_items(1000.0)


# ========================================
# Insert / Dedup
# ========================================


async def test_insert_then_duplicate(store):
    item = make_fetched("https://example.com/a")

    assert await store.insert(item) is InsertOutcome.INSERTED
    assert await store.insert(item) is InsertOutcome.DUPLICATE
    assert await store.pending_count() == 1


async def test_duplicate_url_keeps_first_row(store):
    await store.insert(make_fetched("https://example.com/a", title="first"))
    await store.insert(make_fetched("https://example.com/a", title="second", category="news"))

    stored = await store.get_item(stable_id_for_url("https://example.com/a"))
    assert stored.title == "first"
    assert stored.category == "meme"


async def test_concurrent_inserts_of_same_url(store):
    item = make_fetched("https://example.com/race")

    outcomes = await asyncio.gather(*(store.insert(item) for _ in range(50)))

    assert outcomes.count(InsertOutcome.INSERTED) == 1
    assert outcomes.count(InsertOutcome.DUPLICATE) == 49
    assert await store.pending_count() == 1


async def test_concurrent_inserts_of_distinct_urls(store):
    items = [make_fetched(f"https://example.com/parallel/{i}") for i in range(50)]

    outcomes = await asyncio.wait_for(
        asyncio.gather(*(store.insert(item) for item in items)),
        timeout=10,
    )

    assert outcomes.count(InsertOutcome.INSERTED) == 50
    assert await store.pending_count() == 50


async def test_item_id_is_derived_from_url(store):
    await store.insert(make_fetched("https://example.com/id"))

    item = await store.get_item(stable_id_for_url("https://example.com/id"))

    assert len(item.id) == 32
    assert item.is_consumed is False
    assert item.is_seen is False
    assert item.is_saved is False


async def test_get_item_not_found(store):
    with pytest.raises(ItemNotFoundError):
        await store.get_item("0" * 32)


async def test_pending_count_is_per_session_day(store, today):
    yesterday = today - timedelta(days=1)
    await store.insert(make_fetched("https://example.com/old"), session_date=yesterday)
    await store.insert(make_fetched("https://example.com/new"))

    assert await store.pending_count() == 1
    assert await store.pending_count(yesterday) == 1


# ========================================
# Consumption
# ========================================


async def test_consume_pending_items_fifo_scenario(store):
    for minute, url in enumerate(["m1", "m2", "m3"]):
        await store.insert(make_fetched(f"https://example.com/{url}"), now=at_minute(minute))
    await store.insert(make_fetched("https://example.com/v1", "video"), now=at_minute(3))

    result = await store.consume_pending_items(1.2)

    assert result.items_consumed == 2
    assert result.memes_consumed == 2
    assert result.items_discarded == 2
    assert result.time_consumed_minutes == pytest.approx(1.0)
    assert result.empty_reason is None
    assert await store.pending_count() == 2

    consumed_urls = {item.url for item in await store.list_consumed_today()}
    assert consumed_urls == {"https://example.com/m1", "https://example.com/m2"}


async def test_consume_pending_items_uses_insert_order_for_equal_timestamps(store):
    for url in ["first", "second", "third"]:
        await store.insert(make_fetched(f"https://example.com/{url}", "joke"), now=at_minute(0))

    await store.consume_pending_items(0.3)

    consumed = await store.list_consumed_today()
    assert [item.url for item in consumed] == ["https://example.com/first"]


async def test_consume_empty_buffer_logs_reason(store):
    result = await store.consume_pending_items(5.0)

    assert result.items_consumed == 0
    assert result.empty_reason == "empty_buffer"

    events = await store.get_recent_diagnostics(10)
    types = {event.event_type for event in events}
    assert {EventType.CONSUME_START, EventType.BUDGET_ANALYSIS, EventType.CONSUME_EMPTY} <= types

    empty = next(event for event in events if event.event_type == EventType.CONSUME_EMPTY)
    assert empty.severity == Severity.WARN.value
    assert json.loads(empty.event_metadata)["reason"] == "empty_buffer"


async def test_consume_all_items_too_expensive(store):
    await store.insert(make_fetched("https://example.com/video", "video"))

    result = await store.consume_pending_items(1.0)

    assert result.items_consumed == 0
    assert result.empty_reason == "all_items_too_expensive"
    assert await store.pending_count() == 1


async def test_partial_consume_logs_no_empty_warning(store):
    await store.insert(make_fetched("https://example.com/joke", "joke"), now=at_minute(0))
    await store.insert(make_fetched("https://example.com/video", "video"), now=at_minute(1))

    result = await store.consume_pending_items(0.3)

    assert result.items_consumed == 1
    assert result.empty_reason is None
    types = {event.event_type for event in await store.get_recent_diagnostics(10)}
    assert EventType.CONSUME_EMPTY not in types


async def test_budget_just_below_cost_consumes_nothing(store):
    await store.insert(make_fetched("https://example.com/joke", "joke"))

    result = await store.consume_pending_items(0.2999999995)

    assert result.items_consumed == 0
    assert result.time_consumed_minutes == 0.0
    assert result.empty_reason == "budget_too_small"
    assert await store.pending_count() == 1


async def test_pending_count_arithmetic(store):
    for i in range(6):
        await store.insert(make_fetched(f"https://example.com/{i}", "joke"), now=at_minute(i))

    before = await store.pending_count()
    result = await store.consume_pending_items(1.0)
    after = await store.pending_count()

    assert before - after == result.items_consumed == 3


async def test_consume_batch_is_idempotent(store):
    await store.insert(make_fetched("https://example.com/a"))
    await store.insert(make_fetched("https://example.com/b"))
    ids = [stable_id_for_url("https://example.com/a"), stable_id_for_url("https://example.com/b")]

    assert await store.consume_batch(ids) == 2
    assert await store.consume_batch(ids) == 0
    assert await store.consume_batch([]) == 0
    assert await store.consume_batch(["missing"]) == 0
    assert await store.pending_count() == 0


# ========================================
# Listing and Flags
# ========================================


async def test_list_consumed_today_newest_first(store):
    for minute in range(3):
        await store.insert(make_fetched(f"https://example.com/{minute}"), now=at_minute(minute))
    await _consume_all(store)

    items = await store.list_consumed_today()

    assert [item.url for item in items] == [
        "https://example.com/2",
        "https://example.com/1",
        "https://example.com/0",
    ]


async def test_list_consumed_by_category(store):
    await store.insert(make_fetched("https://example.com/meme"))
    await store.insert(make_fetched("https://example.com/joke", "joke"))
    await store.insert(make_fetched("https://example.com/pending-joke", "joke"))
    await store.consume_batch([
        stable_id_for_url("https://example.com/meme"),
        stable_id_for_url("https://example.com/joke"),
    ])

    jokes = await store.list_consumed_by_category("joke")

    assert [item.url for item in jokes] == ["https://example.com/joke"]


async def test_latest_unseen_consumed_and_mark_seen(store):
    await store.insert(make_fetched("https://example.com/old"), now=at_minute(0))
    await store.insert(make_fetched("https://example.com/new"), now=at_minute(1))
    await _consume_all(store)

    latest = await store.latest_unseen_consumed()
    assert latest.url == "https://example.com/new"

    await store.mark_seen(latest.id)
    await store.mark_seen(latest.id)

    latest = await store.latest_unseen_consumed()
    assert latest.url == "https://example.com/old"


async def test_latest_unseen_consumed_ignores_pending(store):
    await store.insert(make_fetched("https://example.com/pending"))

    assert await store.latest_unseen_consumed() is None


async def test_mark_seen_unknown_item(store):
    with pytest.raises(ItemNotFoundError):
        await store.mark_seen("f" * 32)


async def test_toggle_saved_flips(store):
    await store.insert(make_fetched("https://example.com/save"))
    item_id = stable_id_for_url("https://example.com/save")

    assert await store.toggle_saved(item_id) is True
    assert await store.toggle_saved(item_id) is False
    assert (await store.get_item(item_id)).is_saved is False


async def test_toggle_saved_unknown_item(store):
    with pytest.raises(ItemNotFoundError):
        await store.toggle_saved("missing")


# ========================================
# Pruning
# ========================================


async def test_prune_expired_deletes_pending_and_redacts_consumed(store, today):
    yesterday = today - timedelta(days=1)
    await store.insert(
        make_fetched("https://example.com/old-pending", description="gone"),
        session_date=yesterday,
    )
    await store.insert(
        make_fetched(
            "https://example.com/old-consumed",
            description="text",
            thumbnail_url="https://example.com/t.png",
            thumbnail_data="data:image/png;base64,AAAA",
        ),
        session_date=yesterday,
    )
    await store.insert(make_fetched("https://example.com/today"))
    await store.consume_batch([stable_id_for_url("https://example.com/old-consumed")])

    result = await store.prune_expired()

    assert result.deleted == 1
    assert result.redacted == 1

    with pytest.raises(ItemNotFoundError):
        await store.get_item(stable_id_for_url("https://example.com/old-pending"))

    redacted = await store.get_item(stable_id_for_url("https://example.com/old-consumed"))
    assert redacted.title == ARCHIVED_TITLE
    assert redacted.description is None
    assert redacted.thumbnail_url is None
    assert redacted.thumbnail_data is None
    assert redacted.is_seen is True
    assert redacted.is_consumed is True

    assert await store.pending_count() == 1


async def test_prune_is_idempotent(store, today):
    yesterday = today - timedelta(days=1)
    await store.insert(make_fetched("https://example.com/old"), session_date=yesterday)
    await store.consume_batch([stable_id_for_url("https://example.com/old")])

    first = await store.prune_expired()
    second = await store.prune_expired()

    assert (first.deleted, first.redacted) == (0, 1)
    assert (second.deleted, second.redacted) == (0, 0)


async def test_prune_logs_event(store):
    await store.prune_expired()

    events = await store.get_recent_diagnostics(5)
    assert any(event.event_type == EventType.PRUNE for event in events)


# ========================================
# Statistics
# ========================================


async def test_get_today_stats(store):
    await store.insert(make_fetched("https://example.com/m1"))
    await store.insert(make_fetched("https://example.com/m2"))
    await store.insert(make_fetched("https://example.com/n1", "news"))
    await store.insert(make_fetched("https://example.com/f1", "fact"))
    await store.insert(make_fetched("https://example.com/pending", "video"))
    await store.consume_batch([
        stable_id_for_url("https://example.com/m1"),
        stable_id_for_url("https://example.com/m2"),
        stable_id_for_url("https://example.com/n1"),
        stable_id_for_url("https://example.com/f1"),
    ])

    stats = await store.get_today_stats()

    assert stats.memes_found == 2
    assert stats.news_checked == 1
    assert stats.videos_found == 0
    assert stats.total_items == 4
    assert stats.estimated_time_saved_minutes == pytest.approx(3.0)


async def test_daily_summary_highlights_newest_five(store):
    for minute in range(7):
        await store.insert(make_fetched(f"https://example.com/j{minute}", "joke"), now=at_minute(minute))
    await store.insert(make_fetched("https://example.com/pending", "video"), now=at_minute(8))
    await store.consume_pending_items(2.1)

    summary = await store.get_daily_summary()

    assert summary.stats.jokes_found == 7
    assert [item.url for item in summary.highlights] == [
        f"https://example.com/j{minute}" for minute in (6, 5, 4, 3, 2)
    ]
    assert summary.summary_text == "Today so far: 7 jokes (2.1 min of scrolling saved)"


async def test_daily_summary_of_an_empty_day(store):
    summary = await store.get_daily_summary()

    assert summary.stats.total_items == 0
    assert summary.highlights == []
    assert summary.summary_text.startswith("Today so far: nothing yet")


async def test_diagnostic_summary(store):
    assert (await store.get_diagnostic_summary()).estimated_buffer_health == "empty"

    await store.insert(make_fetched("https://example.com/j", "joke"))
    await store.insert(make_fetched("https://example.com/v", "video"))

    summary = await store.get_diagnostic_summary()

    assert summary.pending_count == 2
    assert summary.estimated_buffer_health == "low"
    assert summary.budget_analysis.min_cost_per_item == 0.3
    assert summary.budget_analysis.max_cost_per_item == 3.0
    assert summary.budget_analysis.total_pending_cost_minutes == pytest.approx(3.3)


@pytest.mark.parametrize(
    "count,cost,expected",
    [(0, 0.0, "empty"), (3, 4.9, "low"), (5, 5.0, "moderate"), (10, 14.9, "moderate"), (20, 15.0, "healthy")],
)
def test_buffer_health(count, cost, expected):
    assert buffer_health(count, cost) == expected


# ========================================
# Diagnostics
# ========================================


async def test_log_event_and_recent_order(store):
    first = await store.log_event("custom", Severity.INFO, "first", metadata={"n": 1})
    second = await store.log_event("custom", "error", "second", related_item_id="abc")

    events = await store.get_recent_diagnostics(10)

    assert [event.id for event in events[:2]] == [second, first]
    assert events[0].severity == "error"
    assert events[0].related_item_id == "abc"
    assert json.loads(events[1].event_metadata) == {"n": 1}


async def test_recent_diagnostics_limit(store):
    for i in range(5):
        await store.log_event("custom", Severity.DEBUG, f"event {i}")

    assert len(await store.get_recent_diagnostics(3)) == 3


async def test_clear_diagnostics_all(store):
    await store.log_event("custom", Severity.INFO, "a")
    await store.log_event("custom", Severity.INFO, "b")

    assert await store.clear_diagnostics(0) == 2
    assert await store.get_recent_diagnostics(10) == []


async def test_clear_diagnostics_older_than(store):
    await store.log_event("custom", Severity.INFO, "recent")
    old_id = await store.log_event("custom", Severity.INFO, "old")

    async with store._transaction() as session:
        await session.execute(
            update(DiagnosticEvent)
            .where(DiagnosticEvent.id == old_id)
            .values(timestamp=datetime.now(timezone.utc) - timedelta(days=10))
        )

    assert await store.clear_diagnostics(7) == 1
    remaining = await store.get_recent_diagnostics(10)
    assert [event.message for event in remaining] == ["recent"]


async def test_logging_while_holding_the_lock_does_not_deadlock(store):
    async def log_inside_transaction() -> str:
        async with store._transaction() as session:
            assert store.locked
            return await store._log_event_locked(session, "custom", Severity.INFO, "inside")

    event_id = await asyncio.wait_for(log_inside_transaction(), timeout=5)

    assert event_id
    assert not store.locked


async def test_consume_with_logging_completes_under_lock(store):
    await store.insert(make_fetched("https://example.com/a"))

    result = await asyncio.wait_for(store.consume_pending_items(0.1), timeout=5)

    assert result.empty_reason == "budget_too_small"


async def test_store_error_wraps_database_faults(store):
    await store.engine.dispose()
    async with store.engine.begin() as conn:
        await conn.exec_driver_sql("DROP TABLE crawl_items")

    with pytest.raises(StoreError):
        await store.pending_count()


# ========================================
# App State
# ========================================


async def test_state_upsert(store):
    assert await store.get_state("theme") is None

    await store.set_state("theme", "dark")
    await store.set_state("theme", "light")

    assert await store.get_state("theme") == "light"


async def test_last_active_round_trip(store):
    assert await store.get_last_active() is None

    when = datetime(2026, 10, 19, 12, 30, 15, 250000, tzinfo=timezone.utc)
    await store.set_last_active(when)

    assert await store.get_last_active() == when


async def test_last_active_ignores_garbage(store):
    await store.set_state(LAST_ACTIVE_TIMESTAMP_KEY, "not-a-number")

    assert await store.get_last_active() is None
