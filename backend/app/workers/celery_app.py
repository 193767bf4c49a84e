"""
Celery application instance and configuration.

The crawl and notification loops run inside the API process; Celery only
carries the daily maintenance jobs and on-demand one-off crawls.
"""

from celery import Celery
from celery.schedules import crontab
from app.core.config import settings

# Create Celery application
celery_app = Celery(
    "cazzmachine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Configure Celery
celery_app.conf.update(
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.celery_accept_content_list,
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=settings.CELERY_ENABLE_UTC,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    result_expires=3600,  # 1 hour
)

# Celery Beat Schedule (Periodic Tasks)
celery_app.conf.beat_schedule = {
    'prune-old-items': {
        'task': 'maintenance.prune_old_items',
        'schedule': crontab(minute='5', hour='0'),  # 00:05 in CELERY_TIMEZONE; only earlier session days are touched
        'options': {'queue': 'maintenance'},
    },
    'clear-old-diagnostics': {
        'task': 'maintenance.clear_old_diagnostics',
        'schedule': crontab(minute='0', hour='3'),  # Daily at 3 AM
        'options': {'queue': 'maintenance'},
    },
}

# Task routing
celery_app.conf.task_routes = {
    'maintenance.*': {'queue': 'maintenance'},
}

# Auto-discover tasks from app.tasks
celery_app.autodiscover_tasks(['app.tasks'])
