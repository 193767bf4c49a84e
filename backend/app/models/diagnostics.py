"""
Diagnostic Event Model

An append-only event log. Rows are never updated; they are only deleted in
bulk (by age, or all at once). The same table doubles as the audit trail the
provider health deriver reads.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, String32, String36, String50, utcnow


class Severity(str, enum.Enum):
    """Diagnostic severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class EventType:
    """Event type names written by the core."""

    CRAWL_START = "crawl_start"
    CRAWL_SUCCESS = "crawl_success"
    CRAWL_ERROR = "crawl_error"
    CRAWL_SKIPPED = "crawl_skipped"
    CRAWL_CYCLE = "crawl_cycle"
    PROVIDER_FETCH = "provider_fetch"
    INSERT_ERROR = "insert_error"
    SCHEDULER = "scheduler"

    CONSUME_START = "consume_start"
    BUDGET_ANALYSIS = "budget_analysis"
    CONSUME_EMPTY = "consume_empty"

    NOTIFICATION_ENGINE = "notification_engine"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_ERROR = "notification_error"

    PRUNE = "prune"

    # Event types the provider health deriver looks at
    CRAWL_EVENTS = (CRAWL_START, CRAWL_SUCCESS, CRAWL_ERROR, PROVIDER_FETCH)


class DiagnosticEvent(Base):
    """
    DiagnosticEvent model.

    Table: diagnostic_logs
    ----------------------
    ``event_metadata`` maps to the ``metadata`` column (the attribute name
    ``metadata`` is reserved by SQLAlchemy's declarative base).
    """

    __tablename__ = "diagnostic_logs"

    id: Mapped[str] = mapped_column(
        String36,
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Event time (UTC)"
    )

    event_type: Mapped[str] = mapped_column(String50, nullable=False)
    severity: Mapped[str] = mapped_column(String50, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    event_metadata: Mapped[Optional[str]] = mapped_column(
        "metadata",
        Text,
        nullable=True,
        comment="Free-form metadata, usually JSON"
    )

    related_item_id: Mapped[Optional[str]] = mapped_column(String32, nullable=True)

    __table_args__ = (
        Index("ix_diagnostic_logs_severity", "severity"),
        Index("ix_diagnostic_logs_event_type", "event_type"),
        Index("ix_diagnostic_logs_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"DiagnosticEvent(event_type={self.event_type!r}, severity={self.severity!r})"
