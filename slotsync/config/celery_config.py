"""Celery application and beat schedule"""
from celery import Celery

from slotsync.config.settings import get_settings

settings = get_settings()


def create_celery_app() -> Celery:
    """Create and configure the Celery application"""
    app = Celery(
        "slotsync",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=["slotsync.tasks.calendar_tasks"],
    )

    app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        beat_schedule={
            "calendar-sync": {
                "task": "slotsync.tasks.calendar_tasks.run_calendar_sync",
                "schedule": settings.SYNC_INTERVAL_MINUTES * 60.0,
            },
        },
    )

    return app


celery_app = create_celery_app()
