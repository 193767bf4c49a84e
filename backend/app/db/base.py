"""
Database Base Classes and Common Utilities

This module provides the foundation for all database models in the application.

Key Concepts:
--------------
1. DeclarativeBase: SQLAlchemy's base class that enables ORM functionality
2. TimestampMixin: created_at / updated_at bookkeeping for mutable rows
3. orm_registry: Central registry that tracks all models and their metadata

Identifiers:
------------
Unlike a typical server schema, none of our tables use auto-incrementing
integer keys. Content items are keyed by a hash of their URL so the same URL
maps to the same row across crawls and restarts; diagnostic events use a
random UUID; app state is keyed by name.
"""

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, registry


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def local_today() -> date:
    """Local calendar day, used to bucket items into sessions."""
    return datetime.now().astimezone().date()


# ================================
# Naming Convention for Constraints
# ================================
# Consistent constraint names keep Alembic autogenerate stable, and SQLite
# needs named constraints for batch migrations.
#
# Format examples:
# - ix_crawl_items_session_date: Index on 'crawl_items.session_date'
# - uq_crawl_items_url: Unique constraint on 'crawl_items.url'
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

orm_registry = registry(metadata=metadata)


# ================================
# Base DeclarativeBase Class
# ================================
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        class AppState(Base):
            __tablename__ = "app_state"
            key: Mapped[str] = mapped_column(primary_key=True)
    """

    registry = orm_registry
    metadata = metadata

    __tablename__: str

    def dict(self) -> dict[str, Any]:
        """
        Convert model instance to dictionary.

        Useful for logging and for building Pydantic responses in tests.
        """
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }


# ================================
# Timestamp Mixin
# ================================
class TimestampMixin:
    """
    Adds created_at / updated_at columns.

    Timestamps are stored in UTC. SQLite has no native timezone support, so
    values read back are naive UTC datetimes; always compare against UTC.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when record was last updated (UTC)"
    )


# ================================
# String Length Constraints
# ================================
String32 = String(32)  # Hex identifiers (content hash)
String36 = String(36)  # UUIDs
String50 = String(50)  # Categories, event types, severities
String100 = String(100)  # Source labels, state keys
String2000 = String(2000)  # URLs
