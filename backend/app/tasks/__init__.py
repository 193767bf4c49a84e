"""
Celery tasks for background processing.
"""

from app.tasks.maintenance_tasks import (
    clear_old_diagnostics,
    crawl_once,
    prune_old_items,
)

__all__ = [
    "prune_old_items",
    "clear_old_diagnostics",
    "crawl_once",
]
