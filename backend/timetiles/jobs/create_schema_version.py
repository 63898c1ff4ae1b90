from timetiles.core.constants import JobType, ProcessingStage
from timetiles.core.errors import SchemaCreationError, ImportValidationError, StageTransitionError
from timetiles.core.logging import job_logger
from timetiles.crud.datasets import get_dataset
from timetiles.crud.import_jobs import get_import_job, update_import_job
from timetiles.jobs.context import JobContext, fail_import_job
from timetiles.services import progress
from timetiles.services.etl.field_stats import build_json_schema, summary_from_dict
from timetiles.services.schema_versioning import create_schema_version
from timetiles.services.stage_transition import StageTransitionService


def create_schema_version_job(ctx: JobContext) -> dict:
    """Runs as its own queued step so version creation never shares a transaction with validation or approval."""
    db = ctx.require_db()
    import_job_id = ctx.require_id("import_job_id", "Import Job ID is required for schema version creation job")
    log = job_logger(JobType.create_schema_version.value, ctx.job_id, import_job_id=import_job_id)

    try:
        job = get_import_job(db, import_job_id)
        if job is None:
            raise ImportValidationError([f"Import job not found: {import_job_id}"])

        if job.dataset_schema_version_id is not None:
            log.info("schema_version_exists", schema_version_id=job.dataset_schema_version_id)
            return {"output": {"skipped": True}}

        validation = job.schema_validation or {}
        if validation.get("requires_approval") and not validation.get("approved"):
            log.info("schema_version_awaiting_approval")
            return {"output": {"skipped": True}}

        dataset = get_dataset(db, job.dataset_id)
        if dataset is None:
            raise SchemaCreationError(f"Dataset not found: {job.dataset_id}")

        field_stats = summary_from_dict(job.schema)
        auto_approved = not validation.get("requires_approval")
        approved_by_id = None if auto_approved else validation.get("approved_by_id")

        progress.start_stage(db, import_job_id, ProcessingStage.create_schema_version, 1)
        version = create_schema_version(
            db,
            dataset.id,
            schema=build_json_schema(field_stats),
            field_metadata=field_stats,
            field_mappings=(job.detection or {}).get("field_mappings"),
            auto_approved=auto_approved,
            approved_by_id=approved_by_id,
            import_sources=[{"import_job_id": job.id, "record_count": job.rows_total - job.duplicate_rows}],
        )
        update_import_job(db, import_job_id, dataset_schema_version_id=version.id)
        progress.complete_stage(db, import_job_id, ProcessingStage.create_schema_version)
        result = StageTransitionService.transition(db, import_job_id, ProcessingStage.geocode_batch, ctx.queue)
        if not result.success:
            raise StageTransitionError(result.reason)

        log.info("schema_version_attached", schema_version_id=version.id, version_number=version.version_number)
        return {"output": {"schema_version_id": version.id, "version_number": version.version_number}}
    except Exception as e:
        fail_import_job(ctx, import_job_id, e, "schema version creation", log)
        raise
