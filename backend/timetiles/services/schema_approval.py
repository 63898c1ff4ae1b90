from dataclasses import dataclass

from sqlalchemy.orm import Session

from timetiles.core.constants import ProcessingStage
from timetiles.core.errors import StageTransitionError
from timetiles.core.logging import logger
from timetiles.crud.import_jobs import get_import_job_for_update
from timetiles.services.etl.field_stats import SchemaChanges
from timetiles.services.stage_transition import StageTransitionService, TransitionResult


@dataclass
class ApprovalDecision:
    requires_approval: bool
    reason: str | None = None


def evaluate_approval(
    changes: SchemaChanges,
    schema_config: dict | None,
    processing_options: dict | None,
    is_first_version: bool,
) -> ApprovalDecision:
    cfg = schema_config or {}
    opts = processing_options or {}

    if not is_first_version and not changes.has_changes:
        return ApprovalDecision(False)
    if cfg.get("locked"):
        return ApprovalDecision(True, "Dataset schema is locked")
    if opts.get("auto_approve_schema") or is_first_version:
        return ApprovalDecision(False)
    if changes.is_breaking:
        return ApprovalDecision(True, "Breaking schema changes detected")
    if changes.new_fields and not cfg.get("auto_approve_non_breaking"):
        return ApprovalDecision(True, "Manual approval required by dataset configuration")
    return ApprovalDecision(False)


def approve_schema(db: Session, import_job_id: int, approved_by_id: int | None, queue=None) -> TransitionResult:
    """Record a manual approval and release the job to schema version creation."""
    job = get_import_job_for_update(db, import_job_id)
    if job is None:
        raise StageTransitionError(f"Import job not found: {import_job_id}")
    if job.stage != ProcessingStage.await_approval.value:
        db.rollback()
        raise StageTransitionError(f"Import job {import_job_id} is not awaiting approval (stage: {job.stage})")

    validation = dict(job.schema_validation or {})
    validation.update(approved=True, approved_by_id=approved_by_id, auto_approved=False)
    job.schema_validation = validation
    db.commit()
    logger.info("schema_approved", import_job_id=import_job_id, approved_by_id=approved_by_id)

    return StageTransitionService.transition(db, import_job_id, ProcessingStage.create_schema_version, queue)
