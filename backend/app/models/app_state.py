"""
Application State Model

Small key/value table for scalars that must survive restarts. Writes are
upserts; nothing is ever deleted.
"""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, String100, utcnow


# Epoch milliseconds of the last time the app was active
LAST_ACTIVE_TIMESTAMP_KEY = "last_active_timestamp"


class AppState(Base):
    """AppState model (table: app_state)."""

    __tablename__ = "app_state"

    key: Mapped[str] = mapped_column(String100, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"AppState(key={self.key!r}, value={self.value!r})"
