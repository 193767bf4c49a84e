"""
Notification Engine

Runs beside the crawl scheduler. After a short first delay, and then once
per scroll/standby cycle (``cadence.total_cycle_minutes`` of the current
throttle level, re-read every time), it:

1. reads today's stats and the newest consumed-but-unseen item
2. builds a short teaser and hands it to the configured sink
3. marks that item seen
4. appends a ``notification_sent`` diagnostic event

Any failure is recorded as a ``notification_error`` warning and the loop
carries on.
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from app.core.config import settings
from app.core.knobs import ThrottleKnobs
from app.core.logging import get_logger
from app.models.content import ContentItem
from app.models.diagnostics import EventType, Severity
from app.schemas.content import DayStats
from app.services import cadence
from app.services.content_store import ContentStore, StoreError, describe_day

logger = get_logger(__name__)


@dataclass
class Notification:
    message: str
    item_id: Optional[str] = None


NotificationSink = Callable[[Notification], Union[Awaitable[Any], Any]]


def build_teaser(stats: DayStats, item: Optional[ContentItem]) -> str:
    """Plain factual summary of today's consumption plus the newest item."""
    message = describe_day(stats)
    if item is not None:
        message += f". Latest {item.category}: {item.title}"
    return message


class NotificationEngine:
    """
    Periodic teaser loop.

    Args:
        store: Content store
        knobs: Shared throttle knobs, read every cycle
        shutdown_event: Shared shutdown flag
        sink: Called with each Notification; may be sync or async
        first_delay_seconds: Delay before the first teaser
    """

    def __init__(
        self,
        store: ContentStore,
        knobs: ThrottleKnobs,
        shutdown_event: Optional[asyncio.Event] = None,
        sink: Optional[NotificationSink] = None,
        first_delay_seconds: Optional[float] = None,
    ):
        self.store = store
        self.knobs = knobs
        self.sink = sink
        self.first_delay_seconds = (
            settings.NOTIFICATION_FIRST_DELAY_SECONDS
            if first_delay_seconds is None else first_delay_seconds
        )
        self._shutdown = shutdown_event or asyncio.Event()
        self.sent_count = 0
        self.last_notification: Optional[Notification] = None

    def cycle_interval_seconds(self) -> float:
        return cadence.total_cycle_minutes(self.knobs.throttle_level) * 60.0

    def request_shutdown(self) -> None:
        self._shutdown.set()

    async def _wait_for_shutdown(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if shutdown was requested."""
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=max(0.0, timeout))
        except asyncio.TimeoutError:
            return False
        return True

    async def run(self) -> None:
        await self._record(EventType.NOTIFICATION_ENGINE, Severity.INFO, "NotificationEngine started")
        await self._record(
            EventType.NOTIFICATION_ENGINE,
            Severity.INFO,
            f"Regular notification interval: {int(self.cycle_interval_seconds())} seconds",
        )

        if await self._wait_for_shutdown(self.first_delay_seconds):
            await self._stopped()
            return

        while True:
            try:
                await self.send_teaser()
            except Exception as e:
                logger.error(
                    "notification_cycle_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                await self._record(
                    EventType.NOTIFICATION_ERROR,
                    Severity.WARN,
                    f"Notification cycle failed: {e}",
                )

            interval = self.cycle_interval_seconds()
            logger.info("next_notification_scheduled", interval_seconds=interval)
            if await self._wait_for_shutdown(interval):
                break

        await self._stopped()

    async def send_teaser(self) -> Optional[Notification]:
        """Build, deliver and record one teaser."""
        try:
            stats = await self.store.get_today_stats()
            item = await self.store.latest_unseen_consumed()
        except StoreError as e:
            await self._record(
                EventType.NOTIFICATION_ERROR,
                Severity.WARN,
                f"Failed to get stats for notification: {e}",
            )
            return None

        notification = Notification(message=build_teaser(stats, item), item_id=item.id if item else None)

        if self.sink is not None:
            try:
                delivered = self.sink(notification)
                if inspect.isawaitable(delivered):
                    await delivered
            except Exception as e:
                logger.warning("notification_delivery_failed", error=str(e), exc_info=True)
                await self._record(
                    EventType.NOTIFICATION_ERROR,
                    Severity.WARN,
                    f"Failed to deliver notification: {e}",
                )

        try:
            if item is not None:
                await self.store.mark_seen(item.id)
            await self.store.log_event(
                EventType.NOTIFICATION_SENT,
                Severity.INFO,
                notification.message,
                related_item_id=notification.item_id,
            )
        except StoreError as e:
            logger.warning("notification_record_failed", error=str(e))

        self.sent_count += 1
        self.last_notification = notification
        logger.info("notification_sent", item_id=notification.item_id)
        return notification

    async def _stopped(self) -> None:
        logger.info("notification_engine_stopped", sent=self.sent_count)
        await self._record(EventType.NOTIFICATION_ENGINE, Severity.INFO, "NotificationEngine shutting down")

    async def _record(self, event_type: str, severity: Severity, message: str) -> None:
        try:
            await self.store.log_event(event_type, severity, message)
        except StoreError as e:
            logger.warning("diagnostic_write_failed", event_type=event_type, error=str(e))
