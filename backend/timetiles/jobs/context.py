import datetime as dt
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from timetiles.core.errors import JobContextError
from timetiles.crud.import_jobs import mark_job_failed


@dataclass
class JobContext:
    """What the dispatcher hands every job handler."""

    input: dict[str, Any] = field(default_factory=dict)
    job_id: str | None = None
    db: Session | None = None
    queue: Any = None

    def require_db(self) -> Session:
        if self.db is None:
            raise JobContextError("Database session not found in job context")
        return self.db

    def require_id(self, key: str, message: str) -> int:
        value = (self.input or {}).get(key)
        if value is None or value == "":
            raise JobContextError(message)
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise JobContextError(f"{message} (got {value!r})") from e

    def enqueue(self, job_type: str, payload: dict[str, Any]):
        if self.queue is None:
            raise JobContextError("Job queue not found in job context")
        self.queue.enqueue(job_type, payload)


def fail_import_job(ctx: JobContext, import_job_id: int, error: Exception, context: str, log) -> None:
    """Persist a failed stage with its error log; the caller re-raises."""
    log.exception("import_job_failed", import_job_id=import_job_id, context=context, error=str(error))
    db = ctx.db
    try:
        db.rollback()
        mark_job_failed(db, import_job_id, str(error), context)
    except Exception as e2:
        log.exception("import_job_failed_status_update_failed", import_job_id=import_job_id, error=str(e2))


def now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)
