"""
Pydantic schemas for content items.

FetchedItem is the provider-side shape (what a fetcher hands to the
scheduler); the remaining schemas are response bodies for the consumer
surface.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ========================================
# Provider Output
# ========================================


class FetchedItem(BaseModel):
    """One candidate item returned by a provider."""

    source: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1, max_length=2000)
    thumbnail_url: Optional[str] = None
    thumbnail_data: Optional[str] = Field(
        None,
        description="Inlined thumbnail as a data: URI"
    )
    description: Optional[str] = None

    @field_validator("title", "url")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


# ========================================
# Response Schemas
# ========================================


class ContentItemResponse(BaseModel):
    """A stored content item as shown to the consumer."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    source: str
    category: str
    title: str
    url: str
    thumbnail_url: Optional[str] = None
    thumbnail_data: Optional[str] = None
    description: Optional[str] = None
    fetched_at: datetime
    session_date: date
    is_seen: bool
    is_saved: bool
    is_consumed: bool


class DayStats(BaseModel):
    """Counts of consumed items for one session day."""

    memes_found: int = 0
    jokes_found: int = 0
    news_checked: int = 0
    videos_found: int = 0
    gossip_found: int = 0
    total_items: int = 0
    estimated_time_saved_minutes: float = 0.0


class ConsumeResult(BaseModel):
    """Outcome of one consume-pending-items call."""

    items_consumed: int = 0
    items_discarded: int = Field(
        0,
        description="Items left pending (not deleted)"
    )
    time_consumed_minutes: float = 0.0
    memes_consumed: int = 0
    jokes_consumed: int = 0
    news_consumed: int = 0
    videos_consumed: int = 0
    gossip_consumed: int = 0
    empty_reason: Optional[str] = Field(
        None,
        description="empty_buffer, budget_too_small or all_items_too_expensive"
    )


class ConsumeRequest(BaseModel):
    """Request body for consume-pending-items."""

    budget_minutes: float = Field(..., ge=0, le=24 * 60)


class PruneResult(BaseModel):
    """Rows removed / redacted by a prune pass."""

    deleted: int
    redacted: int


class ToggleSavedResponse(BaseModel):
    id: str
    is_saved: bool


class PendingCountResponse(BaseModel):
    pending_count: int


class ItemListResponse(BaseModel):
    items: List[ContentItemResponse]
    total: int


class DaySummary(BaseModel):
    """Today's stats, the newest released items and a one-line recap."""

    stats: DayStats
    highlights: List[ContentItemResponse]
    summary_text: str


class ResumeResponse(BaseModel):
    """Catch-up consumption after a period of inactivity."""

    elapsed_minutes: float
    budget_minutes: float
    consumed: Optional[ConsumeResult] = None
