from timetiles.core.constants import JobType
from timetiles.core.logging import job_logger
from timetiles.jobs.context import JobContext
from timetiles.services.stage_transition import StageTransitionService


def cleanup_transition_locks_job(ctx: JobContext | None = None) -> dict:
    """Drops every in-flight transition lock so a crashed handler cannot block a job forever."""
    log = job_logger(JobType.cleanup_transition_locks.value, ctx.job_id if ctx else None)
    cleaned = StageTransitionService.clear_all()
    log.info("transition_locks_cleaned", count=cleaned)
    return {"output": {"transition_locks_cleaned": cleaned, "total_cleaned": cleaned}}
