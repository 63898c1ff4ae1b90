from timetiles.core.config import settings
from timetiles.core.constants import JobType, ProcessingStage, ImportStatus
from timetiles.core.errors import ImportValidationError, StageTransitionError
from timetiles.core.logging import job_logger
from timetiles.crud.import_jobs import get_import_job, set_job_status, update_import_job
from timetiles.jobs.context import JobContext, fail_import_job, now
from timetiles.services import progress
from timetiles.services.etl.field_stats import compute_field_stats, summary_to_dict, suggest_field_mappings
from timetiles.services.etl.geo import detect_geo_columns
from timetiles.services.etl.parsing import parse_file_by_type, file_type_from_mime
from timetiles.services.etl.utils import chunked, json_safe_row
from timetiles.services.etl.validators import validate_rows
from timetiles.services.files import read_bytes, delete_file
from timetiles.services.stage_transition import StageTransitionService


def file_parsing_job(ctx: JobContext) -> dict:
    db = ctx.require_db()
    import_job_id = ctx.require_id("import_job_id", "Import Job ID is required for file parsing job")
    log = job_logger(JobType.file_parsing.value, ctx.job_id, import_job_id=import_job_id)
    log.info("file_parsing_started")

    try:
        job = get_import_job(db, import_job_id)
        if job is None:
            raise ImportValidationError([f"Import job not found: {import_job_id}"])
        set_job_status(db, import_job_id, ImportStatus.processing.value,
                       stage=ProcessingStage.file_parsing.value, started_at=now())

        import_file = job.import_file
        file_type = file_type_from_mime(import_file.mime_type, import_file.filename)
        rows = parse_file_by_type(read_bytes(import_file.file_path), file_type)

        validation = validate_rows(rows)
        if not validation.is_valid:
            raise ImportValidationError(validation.errors)
        progress.start_stage(db, import_job_id, ProcessingStage.file_parsing, len(rows))

        detection = detect_geo_columns(rows)
        summary = compute_field_stats(rows)
        detection["field_mappings"] = suggest_field_mappings(summary, detection)
        rows = [json_safe_row(r) for r in rows]
        batches = list(chunked(rows, settings.BATCH_SIZE))

        update_import_job(
            db,
            import_job_id,
            rows_total=len(rows),
            batches_total=len(batches),
            detection=detection,
            schema=summary_to_dict(summary),
        )
        progress.complete_stage(db, import_job_id, ProcessingStage.file_parsing)
        log.info("file_parsed", rows_total=len(rows), batches=len(batches), geo_type=detection["type"],
                 warnings=validation.warnings)

        result = StageTransitionService.transition(db, import_job_id, ProcessingStage.detect_schema)
        if not result.success:
            raise StageTransitionError(result.reason)
        progress.start_stage(db, import_job_id, ProcessingStage.detect_schema, len(rows))

        for batch_number, batch in enumerate(batches):
            ctx.enqueue(JobType.process_batch.value, {
                "import_job_id": import_job_id,
                "batch_number": batch_number,
                "row_offset": batch_number * settings.BATCH_SIZE,
                "rows": batch,
            })

        if not delete_file(import_file.file_path):
            log.warning("raw_file_not_deleted", file_path=import_file.file_path)

        return {
            "output": {
                "rows_total": len(rows),
                "batches": len(batches),
                "warnings": validation.warnings,
            }
        }
    except Exception as e:
        fail_import_job(ctx, import_job_id, e, "file parsing", log)
        raise
