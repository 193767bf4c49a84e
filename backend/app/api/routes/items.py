"""
Content item API endpoints.

The consumer surface: today's released items, per-category views, daily
stats, consumption, the seen/saved flags and pruning.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from app.db.deps import StoreDep
from app.schemas.content import (
    ConsumeRequest,
    ConsumeResult,
    ContentItemResponse,
    DayStats,
    DaySummary,
    ItemListResponse,
    PendingCountResponse,
    PruneResult,
    ToggleSavedResponse,
)
from app.services.content_store import ItemNotFoundError, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/items", tags=["Items"])


# ========================================
# Helper Functions
# ========================================


def _store_unavailable(e: StoreError) -> HTTPException:
    logger.error(f"Store operation failed: {e}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Content store is unavailable",
    )


def _item_not_found(item_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Item {item_id} not found",
    )


# ========================================
# Queries
# ========================================


@router.get(
    "/today",
    response_model=ItemListResponse,
    summary="Consumed items for today",
)
async def get_items_for_today(store: StoreDep) -> ItemListResponse:
    """Items released into today's visible set, newest first."""
    try:
        items = await store.list_consumed_today()
    except StoreError as e:
        raise _store_unavailable(e)

    return ItemListResponse(
        items=[ContentItemResponse.model_validate(item) for item in items],
        total=len(items),
    )


@router.get(
    "/category/{category}",
    response_model=ItemListResponse,
    summary="Consumed items for today in one category",
)
async def get_items_by_category(category: str, store: StoreDep) -> ItemListResponse:
    try:
        items = await store.list_consumed_by_category(category.strip().lower())
    except StoreError as e:
        raise _store_unavailable(e)

    return ItemListResponse(
        items=[ContentItemResponse.model_validate(item) for item in items],
        total=len(items),
    )


@router.get(
    "/stats/today",
    response_model=DayStats,
    summary="Per-category counts for today",
)
async def get_today_stats(store: StoreDep) -> DayStats:
    try:
        return await store.get_today_stats()
    except StoreError as e:
        raise _store_unavailable(e)


@router.get(
    "/summary/today",
    response_model=DaySummary,
    summary="Today's stats with the newest released items",
)
async def get_daily_summary(store: StoreDep) -> DaySummary:
    """Stats, up to five highlights (newest first) and a one-line recap."""
    try:
        return await store.get_daily_summary()
    except StoreError as e:
        raise _store_unavailable(e)


@router.get(
    "/pending-count",
    response_model=PendingCountResponse,
    summary="Items waiting in today's buffer",
)
async def get_pending_count(store: StoreDep) -> PendingCountResponse:
    try:
        return PendingCountResponse(pending_count=await store.pending_count())
    except StoreError as e:
        raise _store_unavailable(e)


# ========================================
# Consumption and Flags
# ========================================


@router.post(
    "/consume",
    response_model=ConsumeResult,
    summary="Release pending items that fit in a time budget",
)
async def consume_pending_items(request: ConsumeRequest, store: StoreDep) -> ConsumeResult:
    """
    Greedy, oldest-first release of today's pending items.

    Items that do not fit stay pending. When nothing is released,
    ``empty_reason`` says why.
    """
    try:
        return await store.consume_pending_items(request.budget_minutes)
    except StoreError as e:
        raise _store_unavailable(e)


@router.post(
    "/{item_id}/seen",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark an item as seen",
)
async def mark_seen(item_id: str, store: StoreDep) -> None:
    try:
        await store.mark_seen(item_id)
    except ItemNotFoundError:
        raise _item_not_found(item_id)
    except StoreError as e:
        raise _store_unavailable(e)


@router.post(
    "/{item_id}/toggle-saved",
    response_model=ToggleSavedResponse,
    summary="Toggle the saved flag",
)
async def toggle_saved(item_id: str, store: StoreDep) -> ToggleSavedResponse:
    try:
        is_saved = await store.toggle_saved(item_id)
    except ItemNotFoundError:
        raise _item_not_found(item_id)
    except StoreError as e:
        raise _store_unavailable(e)

    return ToggleSavedResponse(id=item_id, is_saved=is_saved)


@router.post(
    "/prune",
    response_model=PruneResult,
    summary="Delete or redact items from earlier days",
)
async def prune_old_items(store: StoreDep) -> PruneResult:
    try:
        return await store.prune_expired()
    except StoreError as e:
        raise _store_unavailable(e)
