"""
Runtime control API endpoints.

Throttle knobs, manual crawl trigger and catch-up consumption on resume.
Knob writes are clamped, never rejected; the scheduler and notification
engine pick the new values up on their next cycle.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, status

from app.core.knobs import ThrottleKnobs
from app.db.deps import KnobsDep, RuntimeDep, SchedulerDep
from app.schemas.content import ResumeResponse
from app.schemas.diagnostics import (
    CrawlTriggerResponse,
    KnobsResponse,
    ThreadCountUpdate,
    ThrottleLevelUpdate,
)
from app.services import cadence
from app.services.content_store import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Runtime"])


def _knobs_response(knobs: ThrottleKnobs, provider_count: int) -> KnobsResponse:
    level = knobs.throttle_level
    return KnobsResponse(
        throttle_level=level,
        thread_count=knobs.thread_count,
        crawl_interval_minutes=cadence.crawl_interval_minutes(level),
        providers_per_cycle=cadence.providers_per_cycle(level, knobs.thread_count, provider_count),
        notification_interval_minutes=cadence.total_cycle_minutes(level),
    )


# ========================================
# Knobs
# ========================================


@router.get("/settings/throttle", response_model=KnobsResponse)
async def get_throttle(knobs: KnobsDep, scheduler: SchedulerDep) -> KnobsResponse:
    return _knobs_response(knobs, len(scheduler.providers))


@router.put("/settings/throttle", response_model=KnobsResponse)
async def set_throttle(
    update: ThrottleLevelUpdate,
    knobs: KnobsDep,
    scheduler: SchedulerDep,
) -> KnobsResponse:
    knobs.set_throttle_level(update.level)
    return _knobs_response(knobs, len(scheduler.providers))


@router.get("/settings/threads", response_model=KnobsResponse)
async def get_threads(knobs: KnobsDep, scheduler: SchedulerDep) -> KnobsResponse:
    return _knobs_response(knobs, len(scheduler.providers))


@router.put("/settings/threads", response_model=KnobsResponse)
async def set_threads(
    update: ThreadCountUpdate,
    knobs: KnobsDep,
    scheduler: SchedulerDep,
) -> KnobsResponse:
    knobs.set_thread_count(update.count)
    return _knobs_response(knobs, len(scheduler.providers))


# ========================================
# Crawling and Lifecycle
# ========================================


@router.post("/crawl/trigger", response_model=CrawlTriggerResponse)
async def trigger_crawl(
    scheduler: SchedulerDep,
    force: bool = Query(False, description="Crawl even if the buffer is full"),
) -> CrawlTriggerResponse:
    """
    Wake the scheduler for an immediate cycle.

    The low-water-mark gate still applies unless ``force`` is set. When the
    background loop is not running, the cycle runs inline.
    """
    if scheduler.shutdown_requested:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduler is shutting down",
        )

    if scheduler.is_running:
        scheduler.trigger(force=force)
        return CrawlTriggerResponse(triggered=True, message="Crawl cycle scheduled")

    result = await scheduler.run_once(force=force)
    if result.skipped:
        return CrawlTriggerResponse(
            triggered=False,
            message=f"Buffer has {result.pending_count} pending items, crawl skipped",
        )
    return CrawlTriggerResponse(
        triggered=True,
        message=f"Crawled {len(result.providers)} providers, {result.items_inserted} new items",
    )


@router.post("/lifecycle/resume", response_model=ResumeResponse)
async def resume(runtime: RuntimeDep) -> ResumeResponse:
    """Consume what would have been scrolled since the app was last active."""
    try:
        result = await runtime.resume()
    except StoreError as e:
        logger.error(f"Resume failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Content store is unavailable",
        )

    return ResumeResponse(
        elapsed_minutes=result.elapsed_minutes,
        budget_minutes=result.budget_minutes,
        consumed=result.consumed,
    )
