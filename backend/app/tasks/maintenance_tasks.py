"""
Celery tasks for store maintenance.

This module contains background tasks for:
- Pruning items from earlier session days (daily)
- Clearing old diagnostic events (daily)
- Running a single crawl pass on demand

Each task opens its own store on the configured database, runs the async
work to completion and returns a result dict with a ``success`` flag.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from app.core.config import settings
from app.core.knobs import ThrottleKnobs
from app.services.content_store import ContentStore, StoreError
from app.services.providers import default_providers
from app.services.runtime import build_http_client
from app.services.scheduler import CrawlScheduler
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ========================================
# Async Implementations
# ========================================


async def prune_old_items_async(database_url: Optional[str] = None) -> Dict[str, Any]:
    store = await ContentStore.open(database_url)
    try:
        result = await store.prune_expired()
        logger.info(f"Pruned {result.deleted} expired items, redacted {result.redacted}")
        return {
            'deleted': result.deleted,
            'redacted': result.redacted,
            'success': True,
        }
    except StoreError as e:
        logger.error(f"Prune failed: {e}")
        return {'error': str(e), 'success': False}
    finally:
        await store.close()


async def clear_old_diagnostics_async(
    older_than_days: Optional[int] = None,
    database_url: Optional[str] = None,
) -> Dict[str, Any]:
    days = settings.DIAGNOSTICS_RETENTION_DAYS if older_than_days is None else older_than_days
    store = await ContentStore.open(database_url)
    try:
        deleted = await store.clear_diagnostics(days)
        logger.info(f"Cleared {deleted} diagnostic events older than {days} days")
        return {
            'older_than_days': days,
            'deleted': deleted,
            'success': True,
        }
    except StoreError as e:
        logger.error(f"Clearing diagnostics failed: {e}")
        return {'error': str(e), 'success': False}
    finally:
        await store.close()


async def crawl_once_async(
    force: bool = False,
    throttle_level: Optional[int] = None,
    thread_count: Optional[int] = None,
    database_url: Optional[str] = None,
) -> Dict[str, Any]:
    store = await ContentStore.open(database_url)
    client = build_http_client()
    try:
        scheduler = CrawlScheduler(
            store=store,
            knobs=ThrottleKnobs(throttle_level, thread_count),
            client=client,
            providers=default_providers(),
        )
        result = await scheduler.run_once(force=force)
        logger.info(
            f"Crawl pass finished: skipped={result.skipped}, "
            f"providers={len(result.providers)}, new={result.items_inserted}"
        )
        return {**result.to_dict(), 'success': True}
    except StoreError as e:
        logger.error(f"Crawl pass failed: {e}")
        return {'error': str(e), 'success': False}
    finally:
        await client.aclose()
        await store.close()


# ========================================
# Celery Tasks
# ========================================


@celery_app.task(name='maintenance.prune_old_items')
def prune_old_items(database_url: Optional[str] = None) -> dict:
    """
    Delete unconsumed items from earlier days and redact consumed ones.

    Returns:
        {'deleted': int, 'redacted': int, 'success': bool}
    """
    return asyncio.run(prune_old_items_async(database_url))


@celery_app.task(name='maintenance.clear_old_diagnostics')
def clear_old_diagnostics(
    older_than_days: Optional[int] = None,
    database_url: Optional[str] = None,
) -> dict:
    """
    Delete diagnostic events older than the retention window.

    Returns:
        {'older_than_days': int, 'deleted': int, 'success': bool}
    """
    return asyncio.run(clear_old_diagnostics_async(older_than_days, database_url))


@celery_app.task(name='maintenance.crawl_once')
def crawl_once(
    force: bool = False,
    throttle_level: Optional[int] = None,
    thread_count: Optional[int] = None,
    database_url: Optional[str] = None,
) -> dict:
    """
    Run one gated crawl pass outside the API process.

    Returns:
        The cycle result (skipped, providers, items_inserted, ...) plus 'success'
    """
    return asyncio.run(crawl_once_async(force, throttle_level, thread_count, database_url))
