"""Database utilities and session management."""

from app.db.base import Base, String32, String36, String50, String100, String2000, local_today, utcnow
from app.db.session import (
    check_db_health,
    close_db,
    create_engine,
    create_session_factory,
    init_db,
)

__all__ = [
    # Base classes
    "Base",
    # String types
    "String32",
    "String36",
    "String50",
    "String100",
    "String2000",
    # Clock helpers
    "utcnow",
    "local_today",
    # Engine / session management
    "create_engine",
    "create_session_factory",
    "init_db",
    "close_db",
    "check_db_health",
]
