import datetime as dt
from sqlalchemy.orm import Session

from timetiles.db.models.scheduled_import import ScheduledImport

HISTORY_LIMIT = 10


def get_scheduled_import(db: Session, scheduled_import_id: int) -> ScheduledImport | None:
    return db.query(ScheduledImport).filter(ScheduledImport.id == scheduled_import_id).one_or_none()


def _stats(si: ScheduledImport) -> dict:
    stats = {"total_runs": 0, "successful_runs": 0, "failed_runs": 0, "average_duration": 0.0}
    stats.update(si.statistics or {})
    return stats


def _push_history(si: ScheduledImport, entry: dict) -> list:
    return ([entry] + list(si.execution_history or []))[:HISTORY_LIMIT]


def record_success(db: Session, si: ScheduledImport, import_file_id: int, duration_s: float):
    now = dt.datetime.now(dt.timezone.utc)
    stats = _stats(si)
    stats["total_runs"] += 1
    stats["successful_runs"] += 1
    n = stats["successful_runs"]
    stats["average_duration"] = (stats["average_duration"] * (n - 1) + duration_s) / n

    si.statistics = stats
    si.execution_history = _push_history(si, {
        "executed_at": now.isoformat(),
        "status": "success",
        "import_file_id": import_file_id,
        "duration": duration_s,
    })
    si.last_run = now
    si.last_status = "success"
    si.last_error = None
    si.current_retries = 0
    db.commit()


def record_failure(db: Session, si: ScheduledImport, error: str):
    now = dt.datetime.now(dt.timezone.utc)
    stats = _stats(si)
    stats["total_runs"] += 1
    stats["failed_runs"] += 1

    si.statistics = stats
    si.execution_history = _push_history(si, {
        "executed_at": now.isoformat(),
        "status": "failed",
        "error": error,
    })
    si.last_run = now
    si.last_status = "failed"
    si.last_error = error
    si.current_retries = (si.current_retries or 0) + 1
    db.commit()


def list_schedulable_imports(db: Session) -> list[ScheduledImport]:
    """Enabled imports that carry a frequency; due-ness is decided by the caller."""
    return (
        db.query(ScheduledImport)
        .filter(ScheduledImport.enabled.is_(True), ScheduledImport.frequency.is_not(None))
        .order_by(ScheduledImport.id)
        .all()
    )


def set_next_run(db: Session, si: ScheduledImport, next_run_at: dt.datetime):
    si.next_run_at = next_run_at
    db.commit()
