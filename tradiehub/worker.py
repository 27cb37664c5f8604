"""
Celery Worker Configuration
Task queue for background jobs.
"""
from celery import Celery
from celery.schedules import crontab

from tradiehub.core.config import settings
from tradiehub.core.logging import configure_logging
from tradiehub.core.sentry import init_sentry

configure_logging()
init_sentry()

celery_app = Celery(
    "tradiehub",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "tradiehub.tasks.marketplace",
        "tradiehub.tasks.credits",
        "tradiehub.tasks.quotes",
    ],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    result_expires=3600,  # 1 hour
    beat_schedule={
        "process-expired-jobs": {
            "task": "tradiehub.tasks.marketplace.process_expired_jobs",
            "schedule": settings.expiry_sweep_interval_seconds,
        },
        "expire-overdue-quotes": {
            "task": "tradiehub.tasks.quotes.expire_overdue_quotes",
            "schedule": crontab(minute=15),  # Hourly at :15
        },
    },
)
