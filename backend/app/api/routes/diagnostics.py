"""
Diagnostics API endpoints.

Buffer summary, derived provider health, and the diagnostic event log
(read, append, clear).
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query, status

from app.db.deps import KnobsDep, StoreDep
from app.schemas.diagnostics import (
    BufferTarget,
    ClearDiagnosticsResponse,
    DiagnosticLogResponse,
    DiagnosticSummary,
    LogDiagnosticRequest,
    LoggedEventResponse,
    ProviderStatusList,
)
from app.services import cadence
from app.services.content_store import StoreError
from app.services.provider_health import MatchMode

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagnostics", tags=["Diagnostics"])


def _store_unavailable(e: StoreError) -> HTTPException:
    logger.error(f"Store operation failed: {e}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Content store is unavailable",
    )


@router.get(
    "/summary",
    response_model=DiagnosticSummary,
    summary="Pending buffer health",
)
async def get_diagnostic_summary(store: StoreDep, knobs: KnobsDep) -> DiagnosticSummary:
    try:
        summary = await store.get_diagnostic_summary()
    except StoreError as e:
        raise _store_unavailable(e)

    level, threads = knobs.throttle_level, knobs.thread_count
    base_buffer, download_target = cadence.buffer_requirements(level, threads)
    summary.buffer_target = BufferTarget(
        throttle_level=level,
        thread_count=threads,
        base_buffer=base_buffer,
        download_target=download_target,
    )
    return summary


@router.get(
    "/providers",
    response_model=ProviderStatusList,
    summary="Provider health derived from the last 24h of crawl events",
)
async def get_provider_status(
    store: StoreDep,
    match_mode: MatchMode = Query(
        MatchMode.SUBSTRING,
        description="substring (default) or token-boundary name matching",
    ),
) -> ProviderStatusList:
    try:
        providers = await store.get_provider_status(match_mode=match_mode)
    except StoreError as e:
        raise _store_unavailable(e)

    return ProviderStatusList(providers=providers)


@router.get(
    "/recent",
    response_model=List[DiagnosticLogResponse],
    summary="Most recent diagnostic events",
)
async def get_recent_diagnostics(
    store: StoreDep,
    limit: int = Query(100, ge=1, le=1000),
) -> List[DiagnosticLogResponse]:
    try:
        events = await store.get_recent_diagnostics(limit)
    except StoreError as e:
        raise _store_unavailable(e)

    return [DiagnosticLogResponse.model_validate(event) for event in events]


@router.post(
    "",
    response_model=LoggedEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append a diagnostic event",
)
async def log_diagnostic(request: LogDiagnosticRequest, store: StoreDep) -> LoggedEventResponse:
    try:
        event_id = await store.log_event(
            request.event_type,
            request.severity,
            request.message,
            metadata=request.metadata,
            related_item_id=request.related_item_id,
        )
    except StoreError as e:
        raise _store_unavailable(e)

    return LoggedEventResponse(id=event_id)


@router.delete(
    "",
    response_model=ClearDiagnosticsResponse,
    summary="Delete diagnostic events",
)
async def clear_diagnostics(
    store: StoreDep,
    older_than_days: int = Query(0, description="0 deletes everything"),
) -> ClearDiagnosticsResponse:
    try:
        deleted = await store.clear_diagnostics(older_than_days)
    except StoreError as e:
        raise _store_unavailable(e)

    return ClearDiagnosticsResponse(deleted=deleted)
