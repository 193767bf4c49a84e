"""
Runtime wiring.

Builds and owns the long-lived pieces of a running process:

    ContentStore ── ThrottleKnobs ── httpx.AsyncClient
         │               │
    CrawlScheduler   NotificationEngine     (asyncio tasks, one shutdown event)

Startup:
--------
1. prune rows from earlier session days (optional)
2. catch-up consumption for the time the app was inactive
3. start the scheduler and notification loops

Shutdown:
---------
The shared event is set; each loop finishes whatever store write it is in,
notices the event and returns. Then the last-active time is recorded and the
HTTP client and database are closed.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

import httpx

from app.core.config import settings
from app.core.knobs import ThrottleKnobs
from app.core.logging import get_logger
from app.db.base import utcnow
from app.schemas.content import ConsumeResult
from app.services import cadence
from app.services.content_store import ContentStore
from app.services.notifications import NotificationEngine, NotificationSink
from app.services.providers import default_providers
from app.services.providers.base import Provider
from app.services.scheduler import CrawlScheduler

logger = get_logger(__name__)


def build_http_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Shared client for all providers; the timeout bounds every request."""
    return httpx.AsyncClient(
        timeout=settings.HTTP_REQUEST_TIMEOUT_SECONDS,
        headers={"User-Agent": settings.HTTP_USER_AGENT},
        follow_redirects=True,
        transport=transport,
    )


@dataclass
class ResumeResult:
    elapsed_minutes: float
    budget_minutes: float
    consumed: Optional[ConsumeResult] = None


class Runtime:
    """Owns the store, knobs, HTTP client and background loops of a process."""

    def __init__(
        self,
        store: ContentStore,
        knobs: ThrottleKnobs,
        client: httpx.AsyncClient,
        providers: Optional[Sequence[Provider]] = None,
        notification_sink: Optional[NotificationSink] = None,
    ):
        self.store = store
        self.knobs = knobs
        self.client = client
        self.shutdown_event = asyncio.Event()

        self.scheduler = CrawlScheduler(
            store=store,
            knobs=knobs,
            client=client,
            providers=default_providers() if providers is None else providers,
            shutdown_event=self.shutdown_event,
        )
        self.notifier = NotificationEngine(
            store=store,
            knobs=knobs,
            shutdown_event=self.shutdown_event,
            sink=notification_sink,
        )
        self._tasks: List[asyncio.Task] = []

    @classmethod
    async def create(
        cls,
        database_url: Optional[str] = None,
        providers: Optional[Sequence[Provider]] = None,
        knobs: Optional[ThrottleKnobs] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        notification_sink: Optional[NotificationSink] = None,
    ) -> "Runtime":
        store = await ContentStore.open(database_url)
        return cls(
            store=store,
            knobs=knobs or ThrottleKnobs(),
            client=build_http_client(transport),
            providers=providers,
            notification_sink=notification_sink,
        )

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self, background_loops: Optional[bool] = None) -> None:
        """Run the startup maintenance, then launch the loops."""
        if settings.PRUNE_ON_STARTUP:
            await self.store.prune_expired()

        await self.resume()

        if background_loops is None:
            background_loops = settings.ENABLE_BACKGROUND_LOOPS
        if not background_loops:
            logger.info("background_loops_disabled")
            return

        self._tasks.append(asyncio.create_task(self.scheduler.run(), name="crawl-scheduler"))
        if settings.ENABLE_NOTIFICATIONS:
            self._tasks.append(asyncio.create_task(self.notifier.run(), name="notification-engine"))

        logger.info("runtime_started", tasks=[task.get_name() for task in self._tasks])

    async def resume(self, now: Optional[datetime] = None) -> ResumeResult:
        """
        Consume what would have been scrolled while the app was inactive.

        The first run only seeds the last-active time.
        """
        now = now or utcnow()
        last_active = await self.store.get_last_active()
        await self.store.set_last_active(now)

        if last_active is None:
            logger.info("last_active_seeded")
            return ResumeResult(elapsed_minutes=0.0, budget_minutes=0.0)

        elapsed_minutes = max(0.0, (now - last_active).total_seconds() / 60.0)
        budget = cadence.consumption_budget_for_elapsed(
            elapsed_minutes,
            self.knobs.throttle_level,
            self.knobs.thread_count,
        )
        logger.info("resumed", elapsed_minutes=round(elapsed_minutes, 2), budget_minutes=round(budget, 2))

        if budget <= 0:
            return ResumeResult(elapsed_minutes=elapsed_minutes, budget_minutes=0.0)

        consumed = await self.store.consume_pending_items(budget)
        return ResumeResult(elapsed_minutes=elapsed_minutes, budget_minutes=budget, consumed=consumed)

    async def stop(self) -> None:
        """Signal shutdown, wait for the loops, then release resources."""
        self.shutdown_event.set()

        if self._tasks:
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for task, outcome in zip(self._tasks, results):
                if isinstance(outcome, BaseException):
                    logger.error(
                        "background_task_failed",
                        task=task.get_name(),
                        error=str(outcome),
                        error_type=type(outcome).__name__,
                    )
            self._tasks.clear()

        await self.store.set_last_active()
        await self.client.aclose()
        await self.store.close()
        logger.info("runtime_stopped")
