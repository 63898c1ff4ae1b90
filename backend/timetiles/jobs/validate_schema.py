from timetiles.core.constants import JobType, ProcessingStage
from timetiles.core.errors import ImportValidationError, StageTransitionError
from timetiles.core.logging import job_logger
from timetiles.crud.datasets import get_dataset
from timetiles.crud.import_jobs import get_import_job, update_import_job
from timetiles.jobs.context import JobContext, fail_import_job
from timetiles.services import progress
from timetiles.services.etl.field_stats import compare_schemas, summary_from_dict
from timetiles.services.schema_approval import evaluate_approval
from timetiles.services.schema_versioning import get_latest_version
from timetiles.services.stage_transition import StageTransitionService


def validate_schema_job(ctx: JobContext) -> dict:
    db = ctx.require_db()
    import_job_id = ctx.require_id("import_job_id", "Import Job ID is required for schema validation job")
    log = job_logger(JobType.validate_schema.value, ctx.job_id, import_job_id=import_job_id)
    log.info("schema_validation_started")

    try:
        job = get_import_job(db, import_job_id)
        if job is None:
            raise ImportValidationError([f"Import job not found: {import_job_id}"])
        dataset = get_dataset(db, job.dataset_id)
        if dataset is None:
            raise ImportValidationError([f"Dataset not found: {job.dataset_id}"])
        progress.start_stage(db, import_job_id, ProcessingStage.validate_schema, 1)

        detected = summary_from_dict(job.schema)
        latest = get_latest_version(db, dataset.id)
        current = summary_from_dict(latest.field_metadata) if latest else {}
        changes = compare_schemas(current, detected)
        decision = evaluate_approval(
            changes,
            dataset.schema_config,
            job.import_file.processing_options,
            is_first_version=latest is None,
        )

        fields = {
            "schema_validation": {
                "requires_approval": decision.requires_approval,
                "approved": not decision.requires_approval,
                "approved_by_id": None,
                "auto_approved": not decision.requires_approval,
                "reason": decision.reason,
                "changes": changes.to_dict(),
            }
        }
        unchanged = latest is not None and not changes.has_changes
        if unchanged:
            fields["dataset_schema_version_id"] = latest.id
        update_import_job(db, import_job_id, **fields)
        progress.complete_stage(db, import_job_id, ProcessingStage.validate_schema)

        if unchanged:
            progress.skip_stage(db, import_job_id, ProcessingStage.create_schema_version)
            next_stage = ProcessingStage.geocode_batch
        elif decision.requires_approval:
            next_stage = ProcessingStage.await_approval
        else:
            next_stage = ProcessingStage.create_schema_version
        result = StageTransitionService.transition(db, import_job_id, next_stage, ctx.queue)
        if not result.success:
            raise StageTransitionError(result.reason)

        log.info(
            "schema_validated",
            requires_approval=decision.requires_approval,
            breaking=changes.is_breaking,
            new_fields=len(changes.new_fields),
            next_stage=next_stage.value,
        )
        return {
            "output": {
                "requires_approval": decision.requires_approval,
                "has_breaking_changes": changes.is_breaking,
                "new_fields": len(changes.new_fields),
                "next_stage": next_stage.value,
            }
        }
    except Exception as e:
        fail_import_job(ctx, import_job_id, e, "schema validation", log)
        raise
