"""
Crawl Scheduler

Keeps the pending buffer topped up by periodically fetching from a subset of
providers.

States:
-------
    idle-wait ──(interval elapsed or trigger, pending < low-water mark)──> crawling
    idle-wait ──(interval elapsed, pending >= low-water mark)──> idle-wait (crawl_skipped)
    crawling  ──(providers for this cycle visited)──> idle-wait
    any       ──(shutdown event set)──> terminated

Every cycle re-reads the throttle knobs, so a knob change applies to the very
next interval and the very next provider selection.

Each cycle starts at a random index of the provider list and visits
``providers_per_cycle()`` providers, wrapping around the end of the list.

Failure isolation:
------------------
- A provider returning nothing is a ``crawl_error`` warning; one raising is a
  ``crawl_error`` error. Either way the cycle continues with the next provider.
- An item that fails to insert is an ``insert_error``; the remaining items
  are still inserted.
- A cycle that fails as a whole is logged and the loop sleeps as usual; the
  next cycle is the retry.

Network fetches run without the store lock; only the individual store calls
(pending count, insert, log) take it.
"""

import asyncio
import random
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Sequence, Tuple

import httpx

from app.core.config import settings
from app.core.knobs import ThrottleKnobs
from app.core.logging import get_logger
from app.models.diagnostics import EventType, Severity
from app.services import cadence
from app.services.content_store import ContentStore, InsertOutcome, StoreError
from app.services.providers.base import Provider

logger = get_logger(__name__)


@dataclass
class CrawlCycleResult:
    """What one scheduler pass did."""

    skipped: bool = False
    pending_count: Optional[int] = None
    providers: List[str] = field(default_factory=list)
    items_fetched: int = 0
    items_inserted: int = 0
    duplicates: int = 0
    provider_failures: int = 0
    insert_failures: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class CrawlScheduler:
    """
    Adaptive crawl loop.

    Args:
        store: Content store receiving the fetched items
        knobs: Shared throttle knobs, read on every cycle
        client: Shared HTTP client handed to providers
        providers: Ordered provider list (fixed for the scheduler's lifetime)
        shutdown_event: Shared shutdown flag; a new one is created if omitted
        low_water_mark: Crawl only while fewer items than this are pending
        rng: Random source for the starting provider index
    """

    def __init__(
        self,
        store: ContentStore,
        knobs: ThrottleKnobs,
        client: httpx.AsyncClient,
        providers: Sequence[Provider],
        shutdown_event: Optional[asyncio.Event] = None,
        low_water_mark: Optional[int] = None,
        initial_delay_seconds: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.knobs = knobs
        self.client = client
        self.providers: Tuple[Provider, ...] = tuple(providers)
        self.low_water_mark = (
            settings.CRAWL_LOW_WATER_MARK if low_water_mark is None else low_water_mark
        )
        self.initial_delay_seconds = (
            settings.CRAWL_INITIAL_DELAY_SECONDS
            if initial_delay_seconds is None else initial_delay_seconds
        )
        self.rng = rng or random.Random()

        self._shutdown = shutdown_event or asyncio.Event()
        self._wake = asyncio.Event()
        self._force_next = False
        self._cycle_lock = asyncio.Lock()
        self._running = False

        self.cycles_run = 0
        self.last_result: Optional[CrawlCycleResult] = None

    # ========================================
    # Cadence
    # ========================================

    def crawl_interval_seconds(self) -> float:
        return cadence.crawl_interval_minutes(self.knobs.throttle_level) * 60.0

    def providers_per_cycle(self) -> int:
        return cadence.providers_per_cycle(
            self.knobs.throttle_level,
            self.knobs.thread_count,
            len(self.providers),
        )

    def select_providers(self) -> List[Provider]:
        """Random start index, then walk forward with wraparound."""
        if not self.providers:
            return []
        start = self.rng.randrange(len(self.providers))
        count = self.providers_per_cycle()
        return [
            self.providers[(start + offset) % len(self.providers)]
            for offset in range(count)
        ]

    # ========================================
    # Control
    # ========================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    def trigger(self, force: bool = False) -> None:
        """
        Wake the loop for an immediate cycle.

        With ``force`` the low-water-mark gate is bypassed for that cycle.
        """
        self._force_next = self._force_next or force
        self._wake.set()

    def request_shutdown(self) -> None:
        self._shutdown.set()

    async def _wait(self, timeout: float) -> None:
        """
        Sleep until the timeout elapses, a trigger arrives or shutdown is
        requested, whichever happens first.
        """
        shutdown_wait = asyncio.ensure_future(self._shutdown.wait())
        wake_wait = asyncio.ensure_future(self._wake.wait())
        try:
            await asyncio.wait(
                {shutdown_wait, wake_wait},
                timeout=max(0.0, timeout),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in (shutdown_wait, wake_wait):
                if not waiter.done():
                    waiter.cancel()
            await asyncio.gather(shutdown_wait, wake_wait, return_exceptions=True)
        self._wake.clear()

    # ========================================
    # Loop
    # ========================================

    async def run(self) -> None:
        """Run cycles until shutdown is requested."""
        self._running = True
        logger.info(
            "crawl_scheduler_started",
            providers=len(self.providers),
            interval_seconds=self.crawl_interval_seconds(),
        )
        await self._record(
            EventType.SCHEDULER,
            Severity.INFO,
            f"Crawl scheduler started with {len(self.providers)} providers",
        )

        try:
            if self.initial_delay_seconds > 0:
                await self._wait(self.initial_delay_seconds)

            while not self._shutdown.is_set():
                force, self._force_next = self._force_next, False
                try:
                    await self.run_once(force=force)
                except Exception as e:
                    logger.error(
                        "crawl_cycle_failed",
                        error=str(e),
                        error_type=type(e).__name__,
                        exc_info=True,
                    )
                    await self._record(
                        EventType.CRAWL_CYCLE,
                        Severity.ERROR,
                        f"Crawl cycle failed: {e}",
                    )

                if self._shutdown.is_set():
                    break

                interval = self.crawl_interval_seconds()
                logger.info(
                    "next_crawl_scheduled",
                    interval_seconds=interval,
                    providers_per_cycle=self.providers_per_cycle(),
                )
                await self._wait(interval)
        finally:
            self._running = False
            logger.info("crawl_scheduler_stopped", cycles_run=self.cycles_run)

    async def run_once(self, force: bool = False) -> CrawlCycleResult:
        """
        One gated pass: crawl if the buffer is below the low-water mark.

        Args:
            force: Crawl even if the buffer is already full
        """
        async with self._cycle_lock:
            try:
                pending = await self.store.pending_count()
            except StoreError as e:
                logger.warning("pending_count_failed", error=str(e))
                result = CrawlCycleResult(skipped=True)
                self.last_result = result
                return result

            if pending >= self.low_water_mark and not force:
                logger.info("crawl_skipped", pending_count=pending, low_water_mark=self.low_water_mark)
                await self._record(
                    EventType.CRAWL_SKIPPED,
                    Severity.INFO,
                    f"Buffer has {pending} pending items, skipping crawl",
                    metadata={"pending_count": pending, "low_water_mark": self.low_water_mark},
                )
                result = CrawlCycleResult(skipped=True, pending_count=pending)
            else:
                result = await self._crawl_cycle()
                result.pending_count = pending

            self.cycles_run += 1
            self.last_result = result
            return result

    async def _crawl_cycle(self) -> CrawlCycleResult:
        result = CrawlCycleResult()

        for provider in self.select_providers():
            if self._shutdown.is_set():
                break
            result.providers.append(provider.name)
            await self._crawl_provider(provider, result)

        logger.info(
            "crawl_cycle_complete",
            providers=result.providers,
            items_fetched=result.items_fetched,
            items_inserted=result.items_inserted,
        )
        await self._record(
            EventType.CRAWL_CYCLE,
            Severity.INFO,
            f"Crawl cycle complete: {result.items_inserted} new items from {len(result.providers)} providers",
            metadata=result.to_dict(),
        )
        return result

    async def _crawl_provider(self, provider: Provider, result: CrawlCycleResult) -> None:
        await self._record(
            EventType.CRAWL_START,
            Severity.INFO,
            f"Crawling: {provider.name} ({provider.category})",
        )

        try:
            fetched = await provider.fetch(self.client)
        except Exception as e:
            result.provider_failures += 1
            logger.error("provider_failed", provider=provider.name, error=str(e), exc_info=True)
            await self._record(
                EventType.CRAWL_ERROR,
                Severity.ERROR,
                f"{provider.name}: {type(e).__name__}: {e}",
            )
            return

        if not fetched:
            result.provider_failures += 1
            logger.warning("provider_returned_nothing", provider=provider.name)
            await self._record(
                EventType.CRAWL_ERROR,
                Severity.WARN,
                f"{provider.name}: no items returned",
            )
            return

        new_items = 0
        for item in fetched:
            try:
                outcome = await self.store.insert(item)
            except StoreError as e:
                result.insert_failures += 1
                logger.warning("item_insert_failed", provider=provider.name, url=item.url, error=str(e))
                await self._record(
                    EventType.INSERT_ERROR,
                    Severity.WARN,
                    f"{provider.name}: failed to insert {item.url}: {e}",
                )
                continue

            if outcome is InsertOutcome.INSERTED:
                new_items += 1
            else:
                result.duplicates += 1

        result.items_fetched += len(fetched)
        result.items_inserted += new_items
        await self._record(
            EventType.CRAWL_SUCCESS,
            Severity.INFO,
            f"{provider.name}: {len(fetched)} fetched, {new_items} new",
            metadata={"fetched": len(fetched), "new": new_items},
        )

    async def _record(self, event_type: str, severity: Severity, message: str, metadata: Optional[dict] = None) -> None:
        """Write a diagnostic event; a failing write is logged, not raised."""
        try:
            await self.store.log_event(event_type, severity, message, metadata=metadata)
        except StoreError as e:
            logger.warning("diagnostic_write_failed", event_type=event_type, error=str(e))
