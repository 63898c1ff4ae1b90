from pathlib import PurePosixPath

from timetiles.core.constants import JobType, QuotaType, UsageType
from timetiles.core.errors import QuotaExceededError, ImportValidationError
from timetiles.core.logging import job_logger
from timetiles.crud.datasets import get_dataset, get_or_create_dataset
from timetiles.crud.import_files import get_import_file
from timetiles.crud.import_jobs import create_import_job
from timetiles.jobs.context import JobContext
from timetiles.services.quota import QuotaService


def dataset_detection_job(ctx: JobContext) -> dict:
    db = ctx.require_db()
    import_file_id = ctx.require_id("import_file_id", "Import File ID is required for dataset detection job")
    log = job_logger(JobType.dataset_detection.value, ctx.job_id, import_file_id=import_file_id)
    log.info("dataset_detection_started")

    try:
        import_file = get_import_file(db, import_file_id)
        if import_file is None:
            raise ImportValidationError([f"Import file not found: {import_file_id}"])

        if import_file.user_id:
            quota = QuotaService(db)
            check = quota.check_quota(QuotaType.import_jobs_per_day, import_file.user_id)
            if not check.allowed:
                raise QuotaExceededError(f"Daily import job limit reached ({check.current}/{check.limit}).")
            quota.increment_usage(UsageType.import_jobs_today, import_file.user_id)

        created = False
        dataset = get_dataset(db, import_file.target_dataset_id) if import_file.target_dataset_id else None
        if dataset is None:
            if import_file.catalog_id is None:
                raise ImportValidationError(["Import file has neither a target dataset nor a catalog"])
            name = PurePosixPath(import_file.original_name).stem or "Imported data"
            dataset, created = get_or_create_dataset(db, import_file.catalog_id, name)

        job = create_import_job(db, import_file.id, dataset.id)
        ctx.enqueue(JobType.file_parsing.value, {"import_job_id": job.id})
        log.info("import_job_created", import_job_id=job.id, dataset_id=dataset.id, dataset_created=created)
        return {"output": {"import_job_id": job.id, "dataset_id": dataset.id, "dataset_created": created}}
    except Exception as e:
        log.exception("dataset_detection_failed", error=str(e))
        db.rollback()
        raise
