from celery import Celery

from timetiles.core.config import settings
from timetiles.core.constants import JobType

celery_app = Celery("timetiles", broker=settings.REDIS_URL, backend=settings.REDIS_URL, include=["timetiles.worker.tasks"])

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "cleanup-transition-locks": {
            "task": f"jobs.{JobType.cleanup_transition_locks.value}",
            "schedule": settings.LOCK_CLEANUP_INTERVAL_MINUTES * 60.0,
            "kwargs": {"input": {}},
        },
        "schedule-manager": {
            "task": f"jobs.{JobType.schedule_manager.value}",
            "schedule": settings.SCHEDULE_CHECK_INTERVAL_MINUTES * 60.0,
            "kwargs": {"input": {}},
        },
    },
)
