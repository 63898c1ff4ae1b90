"""Serialises stage changes per import job.

The lock set lives in process memory: it stops duplicate or re-entrant handler
invocations inside one worker process, but two worker processes can still
transition the same job concurrently. Multi-process deployments need a keyed
lock in the database or in Redis behind the same try_acquire/release/clear_all
contract.
"""
import datetime as dt
import threading
from dataclasses import dataclass

from sqlalchemy.orm import Session

from timetiles.core.constants import ProcessingStage, ImportStatus, VALID_STAGE_TRANSITIONS, STAGE_JOBS
from timetiles.core.errors import StageTransitionError
from timetiles.core.logging import logger
from timetiles.crud.import_jobs import get_import_job_for_update


@dataclass
class TransitionResult:
    success: bool
    from_stage: str | None = None
    to_stage: str | None = None
    queued_job: str | None = None
    reason: str | None = None


class StageTransitionService:
    _transitioning: set = set()
    _lock = threading.Lock()

    @classmethod
    def try_acquire(cls, job_id) -> bool:
        key = str(job_id)
        with cls._lock:
            if key in cls._transitioning:
                return False
            cls._transitioning.add(key)
            return True

    @classmethod
    def release(cls, job_id) -> None:
        with cls._lock:
            cls._transitioning.discard(str(job_id))

    @classmethod
    def clear_all(cls) -> int:
        with cls._lock:
            n = len(cls._transitioning)
            cls._transitioning.clear()
        return n

    @classmethod
    def is_transitioning(cls, job_id) -> bool:
        with cls._lock:
            return str(job_id) in cls._transitioning

    @classmethod
    def transitioning_count(cls) -> int:
        with cls._lock:
            return len(cls._transitioning)

    @staticmethod
    def validate_transition(from_stage: str, to_stage: str) -> bool:
        if from_stage == to_stage:
            return True
        try:
            src = ProcessingStage(from_stage)
            dst = ProcessingStage(to_stage)
        except ValueError:
            return False
        if dst == ProcessingStage.failed:
            return src not in (ProcessingStage.completed, ProcessingStage.failed)
        return dst in VALID_STAGE_TRANSITIONS.get(src, ())

    @classmethod
    def transition(cls, db: Session, job_id: int, to_stage: ProcessingStage, queue=None) -> TransitionResult:
        """Move a job to ``to_stage`` and queue the job bound to that stage.

        Raises StageTransitionError for transitions the state machine does not allow.
        """
        to_stage = ProcessingStage(to_stage)
        if not cls.try_acquire(job_id):
            logger.info("stage_transition_in_progress", import_job_id=job_id, to_stage=to_stage.value)
            return TransitionResult(success=False, to_stage=to_stage.value, reason="Transition already in progress")

        try:
            job = get_import_job_for_update(db, job_id)
            if job is None:
                raise StageTransitionError(f"Import job not found: {job_id}")

            from_stage = job.stage
            if not cls.validate_transition(from_stage, to_stage.value):
                db.rollback()
                raise StageTransitionError(f"Invalid stage transition: {from_stage} -> {to_stage.value}")

            if from_stage == to_stage.value:
                db.rollback()
                return TransitionResult(success=True, from_stage=from_stage, to_stage=from_stage,
                                        reason="Already in stage")

            job.stage = to_stage.value
            if to_stage == ProcessingStage.completed:
                job.status = ImportStatus.completed.value
                job.finished_at = dt.datetime.now(dt.timezone.utc)
            elif to_stage == ProcessingStage.failed:
                job.status = ImportStatus.failed.value
                job.finished_at = dt.datetime.now(dt.timezone.utc)
            else:
                job.status = ImportStatus.processing.value
            db.commit()

            queued = None
            job_type = STAGE_JOBS.get(to_stage)
            if job_type is not None and queue is not None:
                queue.enqueue(job_type.value, {"import_job_id": job_id})
                queued = job_type.value

            logger.info(
                "stage_transitioned",
                import_job_id=job_id,
                from_stage=from_stage,
                to_stage=to_stage.value,
                queued_job=queued,
            )
            return TransitionResult(success=True, from_stage=from_stage, to_stage=to_stage.value, queued_job=queued)
        finally:
            cls.release(job_id)
