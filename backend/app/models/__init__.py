"""
Database Models

This module contains all SQLAlchemy ORM models for the application.

Import models from this module to ensure they're registered with SQLAlchemy:

    from app.models import ContentItem, DiagnosticEvent, AppState

This ensures that:
1. Alembic can detect all models for migrations
2. Base.metadata.create_all() creates every table
"""

from app.models.app_state import LAST_ACTIVE_TIMESTAMP_KEY, AppState
from app.models.content import (
    ARCHIVED_TITLE,
    ContentCategory,
    ContentItem,
    stable_id_for_url,
)
from app.models.diagnostics import DiagnosticEvent, EventType, Severity

__all__ = [
    # Content
    "ContentItem",
    "ContentCategory",
    "ARCHIVED_TITLE",
    "stable_id_for_url",
    # Diagnostics
    "DiagnosticEvent",
    "EventType",
    "Severity",
    # App state
    "AppState",
    "LAST_ACTIVE_TIMESTAMP_KEY",
]
