"""
Pydantic schemas for diagnostics, provider health and runtime knobs.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ========================================
# Diagnostic Events
# ========================================


class DiagnosticLogResponse(BaseModel):
    """A single diagnostic event."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    timestamp: datetime
    event_type: str
    severity: str
    message: str
    metadata: Optional[str] = Field(None, validation_alias="event_metadata")
    related_item_id: Optional[str] = None


class LogDiagnosticRequest(BaseModel):
    """Request body for log-diagnostic."""

    event_type: str = Field(..., min_length=1, max_length=50)
    severity: Literal["debug", "info", "warn", "error"] = "info"
    message: str = Field(..., min_length=1, max_length=10_000)
    metadata: Optional[Dict[str, Any] | str] = None
    related_item_id: Optional[str] = Field(None, max_length=32)

    @field_validator("event_type")
    @classmethod
    def normalize_event_type(cls, v: str) -> str:
        return v.strip().lower()


class LoggedEventResponse(BaseModel):
    id: str


class ClearDiagnosticsResponse(BaseModel):
    deleted: int


class BudgetAnalysis(BaseModel):
    min_cost_per_item: float
    max_cost_per_item: float
    estimated_buffer_minutes: float
    total_pending_cost_minutes: float


class BufferTarget(BaseModel):
    """Items worth keeping buffered at the current knob settings."""

    throttle_level: int
    thread_count: int
    base_buffer: int
    download_target: int


class DiagnosticSummary(BaseModel):
    """Buffer health for the current session day."""

    pending_count: int
    estimated_buffer_health: Literal["empty", "low", "moderate", "healthy"]
    budget_analysis: BudgetAnalysis
    buffer_target: Optional[BufferTarget] = None


# ========================================
# Provider Health
# ========================================


class ProviderStatus(BaseModel):
    """Derived health of a single provider."""

    provider_name: str
    category: str
    last_fetch_status: Literal["ok", "error", "unknown"]
    last_fetch_timestamp: Optional[str] = None
    recent_error_count: int = 0


class ProviderStatusList(BaseModel):
    providers: List[ProviderStatus]


# ========================================
# Runtime Knobs
# ========================================


class ThrottleLevelUpdate(BaseModel):
    """Out-of-range values are clamped to 1-9, not rejected."""

    level: int


class ThreadCountUpdate(BaseModel):
    """Out-of-range values are clamped to 1-8, not rejected."""

    count: int


class KnobsResponse(BaseModel):
    throttle_level: int
    thread_count: int
    crawl_interval_minutes: float
    providers_per_cycle: int
    notification_interval_minutes: float


class CrawlTriggerResponse(BaseModel):
    triggered: bool
    message: str
