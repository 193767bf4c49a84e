"""Pydantic schemas for request/response validation."""

from app.schemas.content import (
    ConsumeRequest,
    ConsumeResult,
    ContentItemResponse,
    DayStats,
    DaySummary,
    FetchedItem,
    ItemListResponse,
    PendingCountResponse,
    PruneResult,
    ResumeResponse,
    ToggleSavedResponse,
)
from app.schemas.diagnostics import (
    BudgetAnalysis,
    BufferTarget,
    ClearDiagnosticsResponse,
    CrawlTriggerResponse,
    DiagnosticLogResponse,
    DiagnosticSummary,
    KnobsResponse,
    LogDiagnosticRequest,
    LoggedEventResponse,
    ProviderStatus,
    ProviderStatusList,
    ThreadCountUpdate,
    ThrottleLevelUpdate,
)

__all__ = [
    # Content
    "FetchedItem",
    "ContentItemResponse",
    "ItemListResponse",
    "DayStats",
    "DaySummary",
    "ConsumeRequest",
    "ConsumeResult",
    "PruneResult",
    "ToggleSavedResponse",
    "PendingCountResponse",
    "ResumeResponse",
    # Diagnostics
    "DiagnosticLogResponse",
    "LogDiagnosticRequest",
    "LoggedEventResponse",
    "ClearDiagnosticsResponse",
    "BudgetAnalysis",
    "BufferTarget",
    "DiagnosticSummary",
    "ProviderStatus",
    "ProviderStatusList",
    # Knobs
    "ThrottleLevelUpdate",
    "ThreadCountUpdate",
    "KnobsResponse",
    "CrawlTriggerResponse",
]
