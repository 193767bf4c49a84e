"""
Content Models

This module contains the content item model and its category enum.

Models Included:
----------------
1. ContentItem - A single piece of fetched content (meme, joke, news, ...)
2. ContentCategory (Enum) - The known content categories

Database Tables:
----------------
- crawl_items: Buffered and released content, keyed by a hash of the URL

Item Lifecycle:
---------------
    fetched → pending (is_consumed = False)
            → consumed (released by the budget allocator)
            → seen (shown to the user) / saved (bookmarked, toggles)

Rows from earlier session days are pruned: pending rows are deleted
(they expired unseen), consumed rows are redacted in place so daily counts
survive while the content itself does not.
"""

import enum
import hashlib
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Date, DateTime, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import (
    Base,
    String32,
    String50,
    String100,
    String2000,
    TimestampMixin,
    utcnow,
)

if TYPE_CHECKING:
    from app.schemas.content import FetchedItem


# Title written over redacted rows from earlier days
ARCHIVED_TITLE = "[ARCHIVED]"


# ================================
# Enums
# ================================

class ContentCategory(str, enum.Enum):
    """
    Known content categories.

    The category column itself is free text: providers may emit other
    values (e.g. "fact"), which are stored as-is and costed as "other"
    by the budget allocator.
    """

    MEME = "meme"
    JOKE = "joke"
    NEWS = "news"
    VIDEO = "video"
    GOSSIP = "gossip"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


def stable_id_for_url(url: str) -> str:
    """
    Derive the content identifier for a URL.

    First 16 bytes of the SHA-256 digest, hex encoded (32 chars). The same
    URL always yields the same id, across crawls and restarts.
    """
    return hashlib.sha256(url.encode("utf-8")).digest()[:16].hex()


# ================================
# ContentItem Model
# ================================

class ContentItem(Base, TimestampMixin):
    """
    ContentItem model - one piece of content fetched from a provider.

    Table: crawl_items
    ------------------
    URL uniqueness is enforced by the database (UNIQUE constraint), which is
    what makes concurrent inserts of the same URL safe: exactly one wins,
    the others observe a duplicate.

    Flags:
    ------
    - is_consumed: Released from the buffer into the visible set
    - is_seen: Shown to the user
    - is_saved: User bookmark (the only flag that can be reset)
    """

    __tablename__ = "crawl_items"

    id: Mapped[str] = mapped_column(
        String32,
        primary_key=True,
        comment="Hash of the canonical URL"
    )

    source: Mapped[str] = mapped_column(
        String100,
        nullable=False,
        comment="Human-readable source label (e.g. r/memes, Google News)"
    )

    category: Mapped[str] = mapped_column(
        String50,
        nullable=False,
        comment="meme, joke, news, video, gossip or free text"
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)

    url: Mapped[str] = mapped_column(
        String2000,
        nullable=False,
        unique=True,
        comment="Canonical content URL"
    )

    thumbnail_url: Mapped[Optional[str]] = mapped_column(String2000, nullable=True)

    thumbnail_data: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Inlined thumbnail as a data: URI"
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="When the item was fetched (UTC)"
    )

    session_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Local calendar day of the fetch"
    )

    is_seen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_saved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_consumed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_crawl_items_session_date", "session_date"),
        Index("ix_crawl_items_category", "category"),
        Index("ix_crawl_items_is_consumed", "is_consumed"),
    )

    @classmethod
    def from_fetched(
        cls,
        fetched: "FetchedItem",
        now: Optional[datetime] = None,
        session_date: Optional[date] = None,
    ) -> "ContentItem":
        """
        Build a pending item from a provider result.

        Args:
            fetched: Provider output
            now: Fetch time (defaults to the current UTC time)
            session_date: Session day (defaults to the local day of ``now``)
        """
        fetched_at = now or utcnow()
        return cls(
            id=stable_id_for_url(fetched.url),
            source=fetched.source,
            category=fetched.category,
            title=fetched.title,
            url=fetched.url,
            thumbnail_url=fetched.thumbnail_url,
            thumbnail_data=fetched.thumbnail_data,
            description=fetched.description,
            fetched_at=fetched_at,
            session_date=session_date or fetched_at.astimezone().date(),
            is_seen=False,
            is_saved=False,
            is_consumed=False,
        )

    def __repr__(self) -> str:
        return f"ContentItem(id={self.id!r}, category={self.category!r}, url={self.url!r})"
