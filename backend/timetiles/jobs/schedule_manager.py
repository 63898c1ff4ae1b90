import datetime as dt

from timetiles.core.constants import JobType, SCHEDULE_FREQUENCIES
from timetiles.core.logging import job_logger
from timetiles.crud.scheduled_imports import list_schedulable_imports, set_next_run
from timetiles.db.models.scheduled_import import ScheduledImport
from timetiles.jobs.context import JobContext, now


def _utc(ts: dt.datetime) -> dt.datetime:
    # sqlite hands back naive datetimes
    return ts.replace(tzinfo=dt.timezone.utc) if ts.tzinfo is None else ts.astimezone(dt.timezone.utc)


def next_run_after(frequency: str, after: dt.datetime) -> dt.datetime:
    """Next boundary strictly after ``after``: top of the hour, midnight, Sunday midnight or the 1st, all UTC."""
    if frequency not in SCHEDULE_FREQUENCIES:
        raise ValueError(f"Invalid frequency: {frequency}")
    after = _utc(after)
    if frequency == "hourly":
        return after.replace(minute=0, second=0, microsecond=0) + dt.timedelta(hours=1)

    midnight = after.replace(hour=0, minute=0, second=0, microsecond=0)
    if frequency == "daily":
        return midnight + dt.timedelta(days=1)
    if frequency == "weekly":
        # Monday is 0, Sunday is 6
        return midnight + dt.timedelta(days=6 - after.weekday() or 7)
    if after.month == 12:
        return midnight.replace(year=after.year + 1, month=1, day=1)
    return midnight.replace(month=after.month + 1, day=1)


def is_due(si: ScheduledImport, at: dt.datetime) -> bool:
    if si.next_run_at is not None:
        return _utc(si.next_run_at) <= at
    if si.last_run is None:
        # never ran and nothing scheduled yet
        return True
    return next_run_after(si.frequency, si.last_run) <= at


def schedule_manager_job(ctx: JobContext) -> dict:
    """Queues a url-fetch for every enabled scheduled import whose next run has come."""
    db = ctx.require_db()
    log = job_logger(JobType.schedule_manager.value, ctx.job_id)
    current = now()

    checked = triggered = errors = 0
    for si in list_schedulable_imports(db):
        checked += 1
        try:
            if not is_due(si, current):
                continue
            upcoming = next_run_after(si.frequency, current)
        except ValueError as e:
            errors += 1
            log.warning("scheduled_import_invalid", scheduled_import_id=si.id, frequency=si.frequency, error=str(e))
            continue

        ctx.enqueue(JobType.url_fetch.value, {"source_url": si.source_url, "scheduled_import_id": si.id})
        set_next_run(db, si, upcoming)
        triggered += 1
        log.info("scheduled_import_triggered", scheduled_import_id=si.id, next_run_at=upcoming.isoformat())

    log.info("schedule_check_finished", checked=checked, triggered=triggered, errors=errors)
    return {"output": {"checked": checked, "triggered": triggered, "errors": errors}}
