"""
Dependencies for FastAPI Routes

Routes never open database sessions themselves: every read and write goes
through the ContentStore, which owns the lock and the transactions. The
runtime (store, knobs, scheduler) is created in the application lifespan and
parked on ``app.state.runtime``; these dependencies hand its parts to routes.

Usage:
------
@router.get("/items/pending-count")
async def pending_count(store: StoreDep):
    return await store.pending_count()

Testing:
--------
Tests either run the real lifespan against a temporary database, or
override ``get_runtime`` with ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from app.core.knobs import ThrottleKnobs
from app.services.content_store import ContentStore
from app.services.runtime import Runtime
from app.services.scheduler import CrawlScheduler


# ================================
# Runtime Dependencies
# ================================

def get_runtime(request: Request) -> Runtime:
    """Return the runtime created by the application lifespan."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Runtime is not initialized",
        )
    return runtime


def get_store(runtime: Annotated[Runtime, Depends(get_runtime)]) -> ContentStore:
    return runtime.store


def get_knobs(runtime: Annotated[Runtime, Depends(get_runtime)]) -> ThrottleKnobs:
    return runtime.knobs


def get_scheduler(runtime: Annotated[Runtime, Depends(get_runtime)]) -> CrawlScheduler:
    return runtime.scheduler


# ================================
# Type Annotation Shortcuts
# ================================

RuntimeDep = Annotated[Runtime, Depends(get_runtime)]
StoreDep = Annotated[ContentStore, Depends(get_store)]
KnobsDep = Annotated[ThrottleKnobs, Depends(get_knobs)]
SchedulerDep = Annotated[CrawlScheduler, Depends(get_scheduler)]
