"""Business logic services."""

from app.services.content_store import ContentStore, InsertOutcome, ItemNotFoundError, StoreError
from app.services.scheduler import CrawlScheduler
from app.services.notifications import NotificationEngine

__all__ = [
    "ContentStore",
    "InsertOutcome",
    "StoreError",
    "ItemNotFoundError",
    "CrawlScheduler",
    "NotificationEngine",
]
