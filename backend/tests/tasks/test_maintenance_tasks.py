"""
Tests for maintenance Celery tasks.

The task bodies run synchronously here (no broker); each call opens its own
store on a temporary database.
"""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio

from app.db.base import local_today
from app.models.content import stable_id_for_url
from app.services.content_store import ContentStore
from app.tasks import maintenance_tasks
from app.tasks.maintenance_tasks import (
    clear_old_diagnostics,
    clear_old_diagnostics_async,
    crawl_once,
    crawl_once_async,
    prune_old_items,
    prune_old_items_async,
)
from conftest import FakeProvider, make_fetched


async def seed(database_url: str) -> str:
    """One expired pending item, one expired consumed item, one from today."""
    store = await ContentStore.open(database_url)
    yesterday = local_today() - timedelta(days=1)
    await store.insert(make_fetched("https://example.com/old-pending"), session_date=yesterday)
    await store.insert(make_fetched("https://example.com/old-consumed"), session_date=yesterday)
    await store.insert(make_fetched("https://example.com/today"))
    await store.consume_batch([stable_id_for_url("https://example.com/old-consumed")])
    await store.log_event("custom", "info", "something happened")
    await store.close()
    return database_url


# ========================================
# Fixtures
# ========================================

@pytest_asyncio.fixture
async def seeded_database(database_url):
    return await seed(database_url)


@pytest.fixture
def fake_default_providers(monkeypatch):
    providers = [FakeProvider("memes", "meme", [make_fetched("https://example.com/task/1")])]
    monkeypatch.setattr(maintenance_tasks, "default_providers", lambda: providers)
    return providers


# ========================================
# Async Implementations
# ========================================

async def test_prune_old_items_async(seeded_database):
    result = await prune_old_items_async(seeded_database)

    assert result == {'deleted': 1, 'redacted': 1, 'success': True}


async def test_clear_old_diagnostics_async_keeps_recent_events(seeded_database):
    result = await clear_old_diagnostics_async(older_than_days=7, database_url=seeded_database)

    assert result['success'] is True
    assert result['deleted'] == 0


async def test_clear_old_diagnostics_async_zero_days_clears_everything(seeded_database):
    result = await clear_old_diagnostics_async(older_than_days=0, database_url=seeded_database)

    assert result['deleted'] == 1


async def test_crawl_once_async(database_url, fake_default_providers):
    result = await crawl_once_async(force=True, throttle_level=9, database_url=database_url)

    assert result['success'] is True
    assert result['skipped'] is False
    assert result['providers'] == ["memes"]
    assert result['items_inserted'] == 1


# ========================================
# Celery Tasks
# ========================================

def test_prune_task_runs_synchronously(database_url):
    seeded_database = asyncio.run(seed(database_url))

    result = prune_old_items(database_url=seeded_database)

    assert result['success'] is True
    assert result['deleted'] == 1


def test_clear_diagnostics_task_defaults_to_retention_window(database_url):
    seeded_database = asyncio.run(seed(database_url))

    result = clear_old_diagnostics(database_url=seeded_database)

    assert result['older_than_days'] == 7
    assert result['success'] is True


def test_crawl_once_task(database_url, fake_default_providers):
    result = crawl_once(database_url=database_url)

    assert result['success'] is True
    assert result['items_inserted'] == 1
    assert fake_default_providers[0].calls == 1


def test_task_names_are_registered():
    assert prune_old_items.name == 'maintenance.prune_old_items'
    assert clear_old_diagnostics.name == 'maintenance.clear_old_diagnostics'
    assert crawl_once.name == 'maintenance.crawl_once'


def test_prune_mid_day_leaves_todays_items_pending(database_url):
    seeded_database = asyncio.run(seed(database_url))

    prune_old_items(database_url=seeded_database)

    async def pending_today():
        store = await ContentStore.open(seeded_database)
        try:
            return await store.pending_count()
        finally:
            await store.close()

    assert asyncio.run(pending_today()) == 1


def test_prune_beat_runs_in_celery_timezone():
    from app.core.config import settings
    from app.workers.celery_app import celery_app

    schedule = celery_app.conf.beat_schedule['prune-old-items']['schedule']

    assert celery_app.conf.timezone == settings.CELERY_TIMEZONE
    assert schedule.hour == {0}
    assert schedule.minute == {5}
