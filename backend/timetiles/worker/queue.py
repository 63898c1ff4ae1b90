from typing import Any, Protocol

from timetiles.core.logging import logger
from timetiles.worker.celery_app import celery_app


def task_name(job_type: str) -> str:
    return f"jobs.{job_type}"


class JobQueue(Protocol):
    def enqueue(self, job_type: str, payload: dict[str, Any]) -> None: ...


class CeleryJobQueue:
    def __init__(self, app=None):
        self.app = app or celery_app

    def enqueue(self, job_type: str, payload: dict[str, Any]) -> None:
        self.app.send_task(task_name(job_type), kwargs={"input": payload})
        logger.info("job_queued", job_type=job_type, **{k: v for k, v in payload.items() if k != "rows"})
