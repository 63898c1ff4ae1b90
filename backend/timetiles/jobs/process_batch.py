from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from timetiles.core.constants import JobType, ProcessingStage
from timetiles.core.errors import ImportValidationError, StageTransitionError
from timetiles.core.logging import job_logger
from timetiles.crud.datasets import existing_event_ids
from timetiles.crud.import_jobs import (
    add_import_rows,
    batch_staged,
    get_import_job,
    increment_counters,
    job_unique_ids,
    update_import_job,
)
from timetiles.db.models.import_row import ImportRow
from timetiles.jobs.context import JobContext, fail_import_job
from timetiles.services import progress
from timetiles.services.etl.utils import row_content_hash
from timetiles.services.stage_transition import StageTransitionService


def duplicate_summary(db, import_job_id: int) -> dict:
    counts = dict(
        db.execute(
            select(ImportRow.duplicate_kind, func.count(ImportRow.id))
            .where(ImportRow.import_job_id == import_job_id)
            .group_by(ImportRow.duplicate_kind)
        ).all()
    )
    return {
        "unique_rows": counts.get(None, 0),
        "internal_duplicates": counts.get("internal", 0),
        "external_duplicates": counts.get("external", 0),
        "total": sum(counts.values()),
    }


def process_batch_job(ctx: JobContext) -> dict:
    db = ctx.require_db()
    import_job_id = ctx.require_id("import_job_id", "Import Job ID is required for batch processing job")
    inp = ctx.input or {}
    batch_number = int(inp.get("batch_number") or 0)
    row_offset = int(inp.get("row_offset") or 0)
    rows = inp.get("rows") or []
    log = job_logger(JobType.process_batch.value, ctx.job_id, import_job_id=import_job_id, batch_number=batch_number)

    try:
        job = get_import_job(db, import_job_id)
        if job is None:
            raise ImportValidationError([f"Import job not found: {import_job_id}"])
        if job.stage != ProcessingStage.detect_schema.value:
            log.info("batch_skipped", stage=job.stage)
            return {"output": {"skipped": True, "reason": f"Job is in stage {job.stage}"}}
        if batch_staged(db, import_job_id, batch_number):
            log.info("batch_already_processed")
            return {"output": {"batch_number": batch_number, "skipped": True, "reason": "Batch already processed"}}

        check_duplicates = not (job.import_file.processing_options or {}).get("skip_duplicate_checking")
        ids = [row_content_hash(r) for r in rows]
        earlier = job_unique_ids(db, import_job_id, ids, exclude_batch=batch_number) if check_duplicates else set()
        existing = existing_event_ids(db, job.dataset_id, ids) if check_duplicates else set()

        seen: set[str] = set()
        staged = []
        for i, (row, uid) in enumerate(zip(rows, ids)):
            kind = None
            if check_duplicates:
                if uid in seen or uid in earlier:
                    kind = "internal"
                elif uid in existing:
                    kind = "external"
            seen.add(uid)
            staged.append(ImportRow(
                import_job_id=import_job_id,
                batch_number=batch_number,
                row_number=row_offset + i,
                data=row,
                unique_id=uid,
                is_duplicate=kind is not None,
                duplicate_kind=kind,
            ))
        try:
            add_import_rows(db, staged)
        except IntegrityError:
            # a concurrent delivery of the same batch got there first
            db.rollback()
            log.info("batch_already_processed")
            return {"output": {"batch_number": batch_number, "skipped": True, "reason": "Batch already processed"}}

        duplicates = sum(1 for r in staged if r.is_duplicate)
        job = increment_counters(db, import_job_id, rows_processed=len(rows), duplicate_rows=duplicates)
        progress.advance(db, import_job_id, ProcessingStage.detect_schema, len(rows))
        log.info("batch_processed", rows=len(rows), duplicates=duplicates,
                 rows_processed=job.rows_processed, rows_total=job.rows_total)

        is_last = job.rows_processed >= job.rows_total
        if is_last:
            update_import_job(db, import_job_id, duplicates={"summary": duplicate_summary(db, import_job_id)})
            progress.complete_stage(db, import_job_id, ProcessingStage.detect_schema)
            result = StageTransitionService.transition(db, import_job_id, ProcessingStage.validate_schema, ctx.queue)
            if not result.success:
                raise StageTransitionError(result.reason)

        return {
            "output": {
                "batch_number": batch_number,
                "processed": len(rows),
                "duplicates": duplicates,
                "is_last_batch": is_last,
            }
        }
    except Exception as e:
        fail_import_job(ctx, import_job_id, e, "batch processing", log)
        raise
