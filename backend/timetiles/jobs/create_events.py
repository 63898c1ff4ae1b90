import datetime as dt

from timetiles.core.config import settings
from timetiles.core.constants import JobType, ProcessingStage
from timetiles.core.errors import ImportValidationError, StageTransitionError
from timetiles.core.logging import job_logger
from timetiles.crud.datasets import add_events, existing_event_ids
from timetiles.crud.import_jobs import delete_import_rows, get_import_job, increment_counters, list_import_rows
from timetiles.db.models.event import Event
from timetiles.db.models.import_job import ImportJob
from timetiles.db.models.import_row import ImportRow
from timetiles.jobs.context import JobContext, fail_import_job
from timetiles.services import progress
from timetiles.services.etl.utils import chunked
from timetiles.services.etl.validators import parse_date, parse_tags_from_row, safe_string_value
from timetiles.services.stage_transition import StageTransitionService

TITLE_MAX = 512


def build_event(job: ImportJob, row: ImportRow, mappings: dict) -> Event:
    data = row.data or {}
    title = safe_string_value(data, mappings.get("title")) if mappings.get("title") else None
    ts_key = mappings.get("timestamp")
    timestamp = parse_date(data.get(ts_key)) if ts_key else None
    return Event(
        dataset_id=job.dataset_id,
        import_job_id=job.id,
        schema_version_id=job.dataset_schema_version_id,
        unique_id=row.unique_id,
        data=data,
        title=(title or f"Event {row.row_number + 1}")[:TITLE_MAX],
        event_timestamp=dt.datetime.fromisoformat(timestamp.replace("Z", "+00:00")) if timestamp else None,
        tags=parse_tags_from_row(data),
        latitude=row.latitude,
        longitude=row.longitude,
    )


def create_events_job(ctx: JobContext) -> dict:
    db = ctx.require_db()
    import_job_id = ctx.require_id("import_job_id", "Import Job ID is required for event creation job")
    log = job_logger(JobType.create_events.value, ctx.job_id, import_job_id=import_job_id)
    log.info("event_creation_started")

    try:
        job = get_import_job(db, import_job_id)
        if job is None:
            raise ImportValidationError([f"Import job not found: {import_job_id}"])
        mappings = (job.detection or {}).get("field_mappings") or {}
        rows = list_import_rows(db, import_job_id, include_duplicates=False)
        progress.start_stage(db, import_job_id, ProcessingStage.create_events, len(rows))

        created = 0
        for chunk in chunked(rows, settings.EVENT_BATCH_SIZE):
            # a redelivered job must not recreate events it already wrote
            done = existing_event_ids(db, job.dataset_id, [r.unique_id for r in chunk], import_job_id=job.id)
            events = [build_event(job, r, mappings) for r in chunk if r.unique_id not in done]
            add_events(db, events)
            created += len(events)
            progress.advance(db, import_job_id, ProcessingStage.create_events, len(chunk))

        increment_counters(db, import_job_id, events_created=created)
        cleaned = delete_import_rows(db, import_job_id)
        progress.complete_stage(db, import_job_id, ProcessingStage.create_events)
        result = StageTransitionService.transition(db, import_job_id, ProcessingStage.completed, ctx.queue)
        if not result.success:
            raise StageTransitionError(result.reason)

        log.info("events_created", events_created=created, rows_cleaned=cleaned)
        return {"output": {"events_created": created, "rows_cleaned": cleaned}}
    except Exception as e:
        fail_import_job(ctx, import_job_id, e, "event creation", log)
        raise
