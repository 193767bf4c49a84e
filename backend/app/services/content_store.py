"""
Content Store

Persistence for content items, diagnostic events and app state on an
embedded SQLite database.

Concurrency model:
------------------
Every public operation acquires ``self._lock`` (a single asyncio.Lock) for
the duration of that one operation and runs it in its own session and
transaction. Nothing in here awaits network I/O, so a crawl in progress never
blocks consumption or UI reads; only the short database work is serialized.

Deduplication is NOT done by the lock: the UNIQUE constraint on
``crawl_items.url`` and ``INSERT ... ON CONFLICT DO NOTHING`` decide which of
two racing inserts wins.

Logging from inside another operation:
--------------------------------------
``log_event()`` takes the lock. Code that already holds it (e.g.
``consume_pending_items`` writing its diagnostics in the same transaction)
must call ``_log_event_locked(session, ...)`` instead; calling
``log_event()`` there would wait on a lock its own caller holds, forever.

Usage:
    store = await ContentStore.open("sqlite+aiosqlite:///./cazzmachine.db")
    outcome = await store.insert(fetched_item)
    result = await store.consume_pending_items(budget_minutes=2.5)
    await store.close()
"""

import asyncio
import enum
import json
import math
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, literal_column, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.db.base import local_today, utcnow
from app.db.session import close_db, create_engine, create_session_factory, init_db
from app.models.app_state import LAST_ACTIVE_TIMESTAMP_KEY, AppState
from app.models.content import ARCHIVED_TITLE, ContentCategory, ContentItem
from app.models.diagnostics import DiagnosticEvent, EventType, Severity
from app.schemas.content import (
    ConsumeResult,
    ContentItemResponse,
    DayStats,
    DaySummary,
    FetchedItem,
    PruneResult,
)
from app.schemas.diagnostics import BudgetAnalysis, DiagnosticSummary, ProviderStatus
from app.services.budget_allocator import allocate, category_cost
from app.services.provider_health import (
    KNOWN_PROVIDERS,
    CrawlEvent,
    KnownProvider,
    MatchMode,
    derive_provider_statuses,
)

logger = get_logger(__name__)


# ================================
# Exceptions
# ================================

class StoreError(Exception):
    """Storage-layer fault (I/O, corruption, schema mismatch)."""
    pass


class ItemNotFoundError(StoreError):
    """No content item with the given id."""
    pass


class InsertOutcome(str, enum.Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"

    def __str__(self) -> str:
        return self.value


def _as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; they are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _encode_metadata(metadata: Optional[Dict[str, Any] | str]) -> Optional[str]:
    if metadata is None or isinstance(metadata, str):
        return metadata
    return json.dumps(metadata, default=str)


def buffer_health(pending_count: int, total_cost: float) -> str:
    """Classify the pending buffer by its total consumption cost."""
    if pending_count == 0:
        return "empty"
    if total_cost < 5.0:
        return "low"
    if total_cost < 15.0:
        return "moderate"
    return "healthy"


def describe_day(stats: DayStats) -> str:
    """One factual line about what was released today."""
    parts = [
        f"{count} {label}"
        for count, label in (
            (stats.memes_found, "memes"),
            (stats.jokes_found, "jokes"),
            (stats.news_checked, "news"),
            (stats.videos_found, "videos"),
            (stats.gossip_found, "gossip"),
        )
        if count
    ]
    summary = ", ".join(parts) if parts else "nothing yet"
    return f"Today so far: {summary} ({stats.estimated_time_saved_minutes:.1f} min of scrolling saved)"


# Tiebreak for items fetched in the same microsecond
_INSERT_ORDER = literal_column("crawl_items.rowid")


class ContentStore:
    """
    Content, diagnostics and app-state storage.

    Owns the session factory; the engine is owned by whoever created it
    (``open()`` creates and owns one).
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        owns_engine: bool = False,
    ):
        self.engine = engine
        self._session_factory = session_factory or create_session_factory(engine)
        self._owns_engine = owns_engine
        self._lock = asyncio.Lock()

    @classmethod
    async def open(cls, database_url: Optional[str] = None) -> "ContentStore":
        """Create an engine, make sure the schema exists and wrap it."""
        engine = create_engine(database_url)
        await init_db(engine)
        return cls(engine, owns_engine=True)

    async def close(self) -> None:
        if self._owns_engine:
            await close_db(self.engine)

    @property
    def locked(self) -> bool:
        """Whether an operation currently holds the store lock."""
        return self._lock.locked()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Hold the store lock and yield a session; commit on success.

        SQLAlchemy errors are rolled back and re-raised as StoreError.
        """
        async with self._lock:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except StoreError:
                    await session.rollback()
                    raise
                except SQLAlchemyError as e:
                    await session.rollback()
                    logger.error(
                        "store_operation_failed",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise StoreError(str(e)) from e

    # ========================================
    # Content Items
    # ========================================

    async def insert(
        self,
        fetched: FetchedItem,
        now: Optional[datetime] = None,
        session_date: Optional[date] = None,
    ) -> InsertOutcome:
        """
        Store a fetched item unless its URL is already known.

        Returns:
            InsertOutcome.INSERTED for a new row, InsertOutcome.DUPLICATE if a
            row with the same URL (and therefore the same id) exists

        Raises:
            StoreError: On storage faults; never for duplicates
        """
        item = ContentItem.from_fetched(
            fetched,
            now=now,
            session_date=session_date or local_today(),
        )
        values = {key: value for key, value in item.dict().items() if value is not None}

        stmt = sqlite_insert(ContentItem).values(**values).on_conflict_do_nothing()

        async with self._transaction() as session:
            result = await session.execute(stmt)

        if result.rowcount == 1:
            return InsertOutcome.INSERTED
        return InsertOutcome.DUPLICATE

    async def get_item(self, item_id: str) -> ContentItem:
        async with self._transaction() as session:
            item = await session.get(ContentItem, item_id)
            if item is None:
                raise ItemNotFoundError(f"Content item not found: {item_id}")
            return item

    async def pending_count(self, session_date: Optional[date] = None) -> int:
        """Unconsumed items for a session day (today by default)."""
        session_date = session_date or local_today()
        async with self._transaction() as session:
            result = await session.execute(
                select(func.count())
                .select_from(ContentItem)
                .where(
                    ContentItem.session_date == session_date,
                    ContentItem.is_consumed.is_(False),
                )
            )
            return int(result.scalar_one())

    async def consume_batch(self, item_ids: Sequence[str]) -> int:
        """
        Mark items consumed.

        Idempotent: ids that are already consumed (or unknown) are left alone.

        Returns:
            Number of rows that changed
        """
        if not item_ids:
            return 0
        async with self._transaction() as session:
            return await self._consume_batch_locked(session, item_ids)

    async def _consume_batch_locked(self, session: AsyncSession, item_ids: Sequence[str]) -> int:
        result = await session.execute(
            update(ContentItem)
            .where(
                ContentItem.id.in_(list(item_ids)),
                ContentItem.is_consumed.is_(False),
            )
            .values(is_consumed=True, updated_at=utcnow())
        )
        return result.rowcount or 0

    async def consume_pending_items(
        self,
        budget_minutes: float,
        session_date: Optional[date] = None,
    ) -> ConsumeResult:
        """
        Release pending items of the session day that fit in the budget.

        Pending items are read oldest first, handed to the budget allocator
        and the accepted ids are flipped in one bulk update. The consume
        diagnostics (``consume_start``, ``budget_analysis`` and, when nothing
        could be released, ``consume_empty``) are written in the same
        transaction.
        """
        session_date = session_date or local_today()

        async with self._transaction() as session:
            rows = await session.execute(
                select(ContentItem.id, ContentItem.category)
                .where(
                    ContentItem.session_date == session_date,
                    ContentItem.is_consumed.is_(False),
                )
                .order_by(ContentItem.fetched_at.asc(), _INSERT_ORDER.asc())
            )
            pending = [(row.id, row.category) for row in rows]

            await self._log_event_locked(
                session,
                EventType.CONSUME_START,
                Severity.INFO,
                f"Consuming with budget {budget_minutes:.2f} min, {len(pending)} pending",
                metadata={"budget_minutes": budget_minutes, "pending_count": len(pending)},
            )

            allocation = allocate(budget_minutes, pending)

            await self._log_event_locked(
                session,
                EventType.BUDGET_ANALYSIS,
                Severity.INFO,
                (
                    f"Pending cost {allocation.total_pending_cost:.2f} min, "
                    f"estimated max items {allocation.estimated_max_items}"
                ),
                metadata={
                    "budget_minutes": allocation.budget_minutes,
                    "total_pending_cost": allocation.total_pending_cost,
                    "min_item_cost": allocation.min_item_cost,
                    "estimated_max_items": allocation.estimated_max_items,
                },
            )

            if allocation.empty_reason is not None:
                await self._log_event_locked(
                    session,
                    EventType.CONSUME_EMPTY,
                    Severity.WARN,
                    f"Nothing consumed: {allocation.empty_reason.value}",
                    metadata={
                        "reason": allocation.empty_reason.value,
                        "budget_minutes": allocation.budget_minutes,
                        "pending_count": allocation.pending_count,
                    },
                )

            if allocation.accepted_ids:
                await self._consume_batch_locked(session, allocation.accepted_ids)

        result = allocation.to_result()
        logger.info(
            "items_consumed",
            budget_minutes=budget_minutes,
            items_consumed=result.items_consumed,
            items_discarded=result.items_discarded,
            time_consumed_minutes=result.time_consumed_minutes,
            empty_reason=result.empty_reason,
        )
        return result

    async def list_consumed_today(
        self,
        session_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[ContentItem]:
        """Consumed items of the session day, newest first."""
        session_date = session_date or local_today()
        query = (
            select(ContentItem)
            .where(
                ContentItem.session_date == session_date,
                ContentItem.is_consumed.is_(True),
            )
            .order_by(ContentItem.fetched_at.desc(), _INSERT_ORDER.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        async with self._transaction() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_consumed_by_category(
        self,
        category: str,
        session_date: Optional[date] = None,
    ) -> List[ContentItem]:
        """Consumed items of one category for the session day, newest first."""
        session_date = session_date or local_today()
        async with self._transaction() as session:
            result = await session.execute(
                select(ContentItem)
                .where(
                    ContentItem.session_date == session_date,
                    ContentItem.category == category,
                    ContentItem.is_consumed.is_(True),
                )
                .order_by(ContentItem.fetched_at.desc(), _INSERT_ORDER.desc())
            )
            return list(result.scalars().all())

    async def latest_unseen_consumed(self, session_date: Optional[date] = None) -> Optional[ContentItem]:
        """Most recently fetched consumed item the user has not seen yet."""
        session_date = session_date or local_today()
        async with self._transaction() as session:
            result = await session.execute(
                select(ContentItem)
                .where(
                    ContentItem.session_date == session_date,
                    ContentItem.is_consumed.is_(True),
                    ContentItem.is_seen.is_(False),
                )
                .order_by(ContentItem.fetched_at.desc(), _INSERT_ORDER.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def mark_seen(self, item_id: str) -> None:
        async with self._transaction() as session:
            result = await session.execute(
                update(ContentItem)
                .where(ContentItem.id == item_id)
                .values(is_seen=True, updated_at=utcnow())
            )
            if result.rowcount == 0:
                raise ItemNotFoundError(f"Content item not found: {item_id}")

    async def toggle_saved(self, item_id: str) -> bool:
        """Flip the saved flag and return the new value."""
        async with self._transaction() as session:
            item = await session.get(ContentItem, item_id)
            if item is None:
                raise ItemNotFoundError(f"Content item not found: {item_id}")
            item.is_saved = not item.is_saved
            return item.is_saved

    async def prune_expired(self, today: Optional[date] = None) -> PruneResult:
        """
        Bound storage growth.

        Items from earlier session days that were never consumed are
        deleted. Consumed ones are redacted in place (title replaced,
        description and thumbnails cleared, marked seen) so per-day counts
        survive.
        """
        today = today or local_today()

        async with self._transaction() as session:
            deleted = await session.execute(
                delete(ContentItem).where(
                    ContentItem.session_date < today,
                    ContentItem.is_consumed.is_(False),
                )
            )
            redacted = await session.execute(
                update(ContentItem)
                .where(
                    ContentItem.session_date < today,
                    ContentItem.is_consumed.is_(True),
                    ContentItem.title != ARCHIVED_TITLE,
                )
                .values(
                    title=ARCHIVED_TITLE,
                    description=None,
                    thumbnail_url=None,
                    thumbnail_data=None,
                    is_seen=True,
                    updated_at=utcnow(),
                )
            )
            result = PruneResult(deleted=deleted.rowcount or 0, redacted=redacted.rowcount or 0)

            await self._log_event_locked(
                session,
                EventType.PRUNE,
                Severity.INFO,
                f"Pruned {result.deleted} expired items, redacted {result.redacted}",
                metadata=result.model_dump(),
            )

        logger.info("items_pruned", deleted=result.deleted, redacted=result.redacted)
        return result

    # ========================================
    # Statistics
    # ========================================

    async def get_today_stats(self, session_date: Optional[date] = None) -> DayStats:
        """Consumed-item counts per category for the session day."""
        session_date = session_date or local_today()
        async with self._transaction() as session:
            rows = await session.execute(
                select(ContentItem.category, func.count())
                .where(
                    ContentItem.session_date == session_date,
                    ContentItem.is_consumed.is_(True),
                )
                .group_by(ContentItem.category)
            )
            counts = {category: count for category, count in rows}

        stats = DayStats(
            memes_found=counts.get(ContentCategory.MEME.value, 0),
            jokes_found=counts.get(ContentCategory.JOKE.value, 0),
            news_checked=counts.get(ContentCategory.NEWS.value, 0),
            videos_found=counts.get(ContentCategory.VIDEO.value, 0),
            gossip_found=counts.get(ContentCategory.GOSSIP.value, 0),
            total_items=sum(counts.values()),
        )
        stats.estimated_time_saved_minutes = sum(
            counts.get(category.value, 0) * category_cost(category.value)
            for category in ContentCategory
        )
        return stats

    async def get_daily_summary(
        self,
        session_date: Optional[date] = None,
        highlight_count: int = 5,
    ) -> DaySummary:
        """Today's stats with the newest ``highlight_count`` released items."""
        stats = await self.get_today_stats(session_date)
        highlights = await self.list_consumed_today(session_date, limit=highlight_count)
        return DaySummary(
            stats=stats,
            highlights=[ContentItemResponse.model_validate(item) for item in highlights],
            summary_text=describe_day(stats),
        )

    async def get_diagnostic_summary(self, session_date: Optional[date] = None) -> DiagnosticSummary:
        """Pending-buffer size, cost figures and health for the session day."""
        session_date = session_date or local_today()
        async with self._transaction() as session:
            rows = await session.execute(
                select(ContentItem.category).where(
                    ContentItem.session_date == session_date,
                    ContentItem.is_consumed.is_(False),
                )
            )
            costs = [category_cost(category) for category in rows.scalars()]

        total_cost = sum(costs)
        return DiagnosticSummary(
            pending_count=len(costs),
            estimated_buffer_health=buffer_health(len(costs), total_cost),
            budget_analysis=BudgetAnalysis(
                min_cost_per_item=min(costs) if costs else 0.0,
                max_cost_per_item=max(costs) if costs else 0.0,
                estimated_buffer_minutes=total_cost,
                total_pending_cost_minutes=total_cost,
            ),
        )

    # ========================================
    # Diagnostics
    # ========================================

    async def log_event(
        self,
        event_type: str,
        severity: Severity | str,
        message: str,
        metadata: Optional[Dict[str, Any] | str] = None,
        related_item_id: Optional[str] = None,
    ) -> str:
        """
        Append a diagnostic event. Acquires the store lock.

        Returns:
            The new event's id
        """
        async with self._transaction() as session:
            return await self._log_event_locked(
                session,
                event_type,
                severity,
                message,
                metadata=metadata,
                related_item_id=related_item_id,
            )

    async def _log_event_locked(
        self,
        session: AsyncSession,
        event_type: str,
        severity: Severity | str,
        message: str,
        metadata: Optional[Dict[str, Any] | str] = None,
        related_item_id: Optional[str] = None,
    ) -> str:
        """Append a diagnostic event inside a transaction the caller holds."""
        event = DiagnosticEvent(
            event_type=event_type,
            severity=str(severity),
            message=message,
            event_metadata=_encode_metadata(metadata),
            related_item_id=related_item_id,
            timestamp=utcnow(),
        )
        session.add(event)
        await session.flush()
        return event.id

    async def get_recent_diagnostics(self, limit: int = 100) -> List[DiagnosticEvent]:
        """Newest events first."""
        async with self._transaction() as session:
            result = await session.execute(
                select(DiagnosticEvent)
                .order_by(DiagnosticEvent.timestamp.desc())
                .limit(max(0, limit))
            )
            return list(result.scalars().all())

    async def clear_diagnostics(self, older_than_days: int = 0) -> int:
        """
        Delete diagnostic events.

        Args:
            older_than_days: 0 or less deletes every event; otherwise only
                events older than that many days

        Returns:
            Number of deleted events
        """
        stmt = delete(DiagnosticEvent)
        if older_than_days > 0:
            cutoff = utcnow() - timedelta(days=older_than_days)
            stmt = stmt.where(DiagnosticEvent.timestamp < cutoff)

        async with self._transaction() as session:
            result = await session.execute(stmt)
            deleted = result.rowcount or 0

        logger.info("diagnostics_cleared", older_than_days=older_than_days, deleted=deleted)
        return deleted

    async def get_provider_status(
        self,
        today: Optional[date] = None,
        providers: Sequence[KnownProvider] = KNOWN_PROVIDERS,
        match_mode: MatchMode = MatchMode.SUBSTRING,
    ) -> List[ProviderStatus]:
        """Derive provider health from the last 24 hours of crawl events."""
        today = today or local_today()
        cutoff = utcnow() - timedelta(days=1)

        async with self._transaction() as session:
            rows = await session.execute(
                select(
                    DiagnosticEvent.event_type,
                    DiagnosticEvent.severity,
                    DiagnosticEvent.message,
                    DiagnosticEvent.timestamp,
                )
                .where(
                    DiagnosticEvent.event_type.in_(EventType.CRAWL_EVENTS),
                    DiagnosticEvent.timestamp > cutoff,
                )
                .order_by(DiagnosticEvent.timestamp.desc())
            )
            events = [
                CrawlEvent(
                    event_type=row.event_type,
                    severity=row.severity,
                    message=row.message,
                    timestamp=_as_utc(row.timestamp),
                )
                for row in rows
            ]

            categories = await session.execute(
                select(ContentItem.category)
                .where(ContentItem.session_date == today)
                .distinct()
            )
            categories_today = set(categories.scalars())

        return derive_provider_statuses(
            events,
            categories_today,
            today,
            providers=providers,
            match_mode=match_mode,
        )

    # ========================================
    # App State
    # ========================================

    async def get_state(self, key: str) -> Optional[str]:
        async with self._transaction() as session:
            state = await session.get(AppState, key)
            return state.value if state else None

    async def set_state(self, key: str, value: str) -> None:
        """Upsert a key."""
        now = utcnow()
        stmt = sqlite_insert(AppState).values(key=key, value=value, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AppState.key],
            set_={"value": stmt.excluded.value, "updated_at": now},
        )
        async with self._transaction() as session:
            await session.execute(stmt)

    async def get_last_active(self) -> Optional[datetime]:
        """Last-active time, or None if it was never recorded."""
        value = await self.get_state(LAST_ACTIVE_TIMESTAMP_KEY)
        if value is None:
            return None
        try:
            millis = int(value)
        except ValueError:
            logger.warning("invalid_last_active_timestamp", value=value)
            return None
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)

    async def set_last_active(self, when: Optional[datetime] = None) -> datetime:
        """Record the last-active time (now by default) as epoch milliseconds."""
        when = _as_utc(when) if when else utcnow()
        await self.set_state(LAST_ACTIVE_TIMESTAMP_KEY, str(math.floor(when.timestamp() * 1000)))
        return when
