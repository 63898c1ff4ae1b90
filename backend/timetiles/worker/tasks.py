from sqlalchemy.orm import Session

from timetiles.worker.celery_app import celery_app
from timetiles.worker.queue import CeleryJobQueue, task_name
from timetiles.core.config import settings
from timetiles.core.constants import JobType
from timetiles.core.logging import configure_logging, logger
from timetiles.db.session import SessionLocal
from timetiles.jobs.context import JobContext
from timetiles.jobs.registry import JOB_HANDLERS

configure_logging(settings.ENV)


def run_job(job_type: str, task_id: str | None, input: dict | None) -> dict:
    handler = JOB_HANDLERS[job_type]
    db: Session = SessionLocal()
    try:
        ctx = JobContext(input=input or {}, job_id=task_id, db=db, queue=CeleryJobQueue(celery_app))
        result = handler(ctx)
        logger.info("job_finished", job_type=job_type, task_id=task_id)
        return result
    except Exception as e:
        logger.exception("job_failed", job_type=job_type, task_id=task_id, error=str(e))
        raise
    finally:
        db.close()


@celery_app.task(name=task_name(JobType.url_fetch.value), bind=True)
def url_fetch_task(self, input: dict):
    return run_job(JobType.url_fetch.value, self.request.id, input)


@celery_app.task(name=task_name(JobType.dataset_detection.value), bind=True)
def dataset_detection_task(self, input: dict):
    return run_job(JobType.dataset_detection.value, self.request.id, input)


@celery_app.task(name=task_name(JobType.file_parsing.value), bind=True)
def file_parsing_task(self, input: dict):
    return run_job(JobType.file_parsing.value, self.request.id, input)


@celery_app.task(name=task_name(JobType.process_batch.value), bind=True)
def process_batch_task(self, input: dict):
    return run_job(JobType.process_batch.value, self.request.id, input)


@celery_app.task(name=task_name(JobType.validate_schema.value), bind=True)
def validate_schema_task(self, input: dict):
    return run_job(JobType.validate_schema.value, self.request.id, input)


@celery_app.task(name=task_name(JobType.create_schema_version.value), bind=True)
def create_schema_version_task(self, input: dict):
    return run_job(JobType.create_schema_version.value, self.request.id, input)


@celery_app.task(name=task_name(JobType.geocode_batch.value), bind=True)
def geocode_batch_task(self, input: dict):
    return run_job(JobType.geocode_batch.value, self.request.id, input)


@celery_app.task(name=task_name(JobType.create_events.value), bind=True)
def create_events_task(self, input: dict):
    return run_job(JobType.create_events.value, self.request.id, input)


@celery_app.task(name=task_name(JobType.cleanup_transition_locks.value), bind=True)
def cleanup_transition_locks_task(self, input: dict | None = None):
    return run_job(JobType.cleanup_transition_locks.value, self.request.id, input)


@celery_app.task(name=task_name(JobType.schedule_manager.value), bind=True)
def schedule_manager_task(self, input: dict | None = None):
    return run_job(JobType.schedule_manager.value, self.request.id, input)
