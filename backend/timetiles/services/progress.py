import datetime as dt
from typing import Any

from sqlalchemy.orm import Session

from timetiles.core.constants import ProcessingStage, STAGE_WEIGHTS
from timetiles.core.logging import logger
from timetiles.crud.import_jobs import get_import_job_for_update

PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
SKIPPED = "skipped"


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _stage_key(stage) -> str:
    return ProcessingStage(stage).value


def overall_percentage(stages: dict[str, dict[str, Any]]) -> float:
    weighted = 0.0
    total_weight = 0
    for stage, weight in STAGE_WEIGHTS.items():
        if weight <= 0:
            continue
        rec = stages.get(stage.value)
        if rec and rec.get("status") == SKIPPED:
            continue
        total_weight += weight
        if not rec:
            continue
        if rec.get("status") == COMPLETED:
            frac = 1.0
        elif rec.get("total"):
            frac = min(rec.get("processed", 0) / rec["total"], 1.0)
        else:
            frac = 0.0
        weighted += weight * frac
    if total_weight == 0:
        return 0.0
    return round(weighted / total_weight * 100, 2)


def _update(db: Session, job_id: int, stage, mutate) -> dict:
    job = get_import_job_for_update(db, job_id)
    if job is None:
        raise ValueError(f"Import job not found: {job_id}")

    progress = dict(job.progress or {})
    stages = {k: dict(v) for k, v in (progress.get("stages") or {}).items()}
    key = _stage_key(stage)
    rec = stages.get(key) or {"status": PENDING, "processed": 0, "total": 0,
                              "started_at": None, "completed_at": None}
    mutate(rec)
    stages[key] = rec

    previous = progress.get("overall_percentage", 0.0) or 0.0
    progress["stages"] = stages
    progress["current_stage"] = key
    progress["overall_percentage"] = max(previous, overall_percentage(stages))
    job.progress = progress
    db.commit()
    return rec


def start_stage(db: Session, job_id: int, stage, total: int) -> dict:
    def mutate(rec):
        if rec["status"] == COMPLETED:
            return
        rec["status"] = IN_PROGRESS
        # processed never moves backwards; a smaller total is raised to meet it
        rec["total"] = max(int(total), rec.get("processed", 0), 0)
        rec["started_at"] = rec.get("started_at") or _now()

    rec = _update(db, job_id, stage, mutate)
    logger.info("stage_started", import_job_id=job_id, stage=_stage_key(stage), total=rec["total"])
    return rec


def advance(db: Session, job_id: int, stage, delta: int) -> dict:
    """Add ``delta`` processed units; negative deltas are ignored and the count is capped at the stage total."""
    def mutate(rec):
        if rec["status"] in (COMPLETED, SKIPPED):
            return
        if rec["status"] == PENDING:
            rec["status"] = IN_PROGRESS
            rec["started_at"] = _now()
        rec["processed"] = min(rec.get("processed", 0) + max(int(delta), 0), rec.get("total", 0))

    return _update(db, job_id, stage, mutate)


def complete_stage(db: Session, job_id: int, stage) -> dict:
    def mutate(rec):
        if rec["status"] == SKIPPED:
            return
        rec["status"] = COMPLETED
        rec["processed"] = rec.get("total", 0)
        rec["started_at"] = rec.get("started_at") or _now()
        rec["completed_at"] = _now()

    rec = _update(db, job_id, stage, mutate)
    logger.info("stage_completed", import_job_id=job_id, stage=_stage_key(stage))
    return rec


def skip_stage(db: Session, job_id: int, stage) -> dict:
    def mutate(rec):
        if rec["status"] == COMPLETED:
            return
        rec["status"] = SKIPPED
        rec["completed_at"] = _now()

    rec = _update(db, job_id, stage, mutate)
    logger.info("stage_skipped", import_job_id=job_id, stage=_stage_key(stage))
    return rec
