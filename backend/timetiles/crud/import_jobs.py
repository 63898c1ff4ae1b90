import datetime as dt
from sqlalchemy import update, delete, select
from sqlalchemy.orm import Session

from timetiles.core.constants import ProcessingStage, ImportStatus
from timetiles.db.models.import_job import ImportJob
from timetiles.db.models.import_row import ImportRow


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def get_import_job(db: Session, import_job_id: int) -> ImportJob | None:
    return db.query(ImportJob).filter(ImportJob.id == import_job_id).one_or_none()


def get_import_job_for_update(db: Session, import_job_id: int) -> ImportJob | None:
    return (
        db.query(ImportJob)
        .filter(ImportJob.id == import_job_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )


def create_import_job(db: Session, import_file_id: int, dataset_id: int) -> ImportJob:
    job = ImportJob(
        import_file_id=import_file_id,
        dataset_id=dataset_id,
        stage=ProcessingStage.file_parsing.value,
        status=ImportStatus.pending.value,
        duplicates={},
        progress={},
        schema={},
        detection={},
        schema_validation={},
        geocoding={},
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def update_import_job(db: Session, import_job_id: int, **fields) -> ImportJob:
    job = db.query(ImportJob).filter(ImportJob.id == import_job_id).one()
    for k, v in fields.items():
        setattr(job, k, v)
    db.commit()
    db.refresh(job)
    return job


def set_job_status(
    db: Session,
    import_job_id: int,
    status: str,
    stage: str | None = None,
    started_at: dt.datetime | None = None,
    finished_at: dt.datetime | None = None,
):
    job = db.query(ImportJob).filter(ImportJob.id == import_job_id).one()
    job.status = status
    if stage is not None:
        job.stage = stage
    if started_at is not None:
        job.started_at = started_at
    if finished_at is not None:
        job.finished_at = finished_at
    db.commit()


def mark_job_failed(db: Session, import_job_id: int, error: str, context: str):
    job = db.query(ImportJob).filter(ImportJob.id == import_job_id).one_or_none()
    if job is None:
        return
    job.stage = ProcessingStage.failed.value
    job.status = ImportStatus.failed.value
    job.error_log = {"error": error, "context": context, "timestamp": utcnow().isoformat()}
    job.finished_at = utcnow()
    db.commit()


def increment_counters(db: Session, import_job_id: int, **deltas: int) -> ImportJob:
    """Atomic ``x = x + n`` on the job's counter columns; safe for batches finishing in any order."""
    values = {k: getattr(ImportJob, k) + n for k, n in deltas.items() if n}
    if values:
        db.execute(update(ImportJob).where(ImportJob.id == import_job_id).values(**values))
        db.commit()
    job = db.get(ImportJob, import_job_id, populate_existing=True)
    return job


def add_import_rows(db: Session, rows: list[ImportRow]):
    db.add_all(rows)
    db.commit()


def list_import_rows(db: Session, import_job_id: int, include_duplicates: bool = True) -> list[ImportRow]:
    q = db.query(ImportRow).filter(ImportRow.import_job_id == import_job_id)
    if not include_duplicates:
        q = q.filter(ImportRow.is_duplicate.is_(False))
    return q.order_by(ImportRow.row_number).all()


def job_unique_ids(
    db: Session, import_job_id: int, unique_ids: list[str], exclude_batch: int | None = None
) -> set[str]:
    if not unique_ids:
        return set()
    stmt = select(ImportRow.unique_id).where(
        ImportRow.import_job_id == import_job_id,
        ImportRow.unique_id.in_(unique_ids),
    )
    if exclude_batch is not None:
        stmt = stmt.where(ImportRow.batch_number != exclude_batch)
    return set(db.execute(stmt).scalars())


def batch_staged(db: Session, import_job_id: int, batch_number: int) -> bool:
    stmt = select(ImportRow.id).where(
        ImportRow.import_job_id == import_job_id,
        ImportRow.batch_number == batch_number,
    ).limit(1)
    return db.execute(stmt).first() is not None


def delete_import_rows(db: Session, import_job_id: int) -> int:
    res = db.execute(delete(ImportRow).where(ImportRow.import_job_id == import_job_id))
    db.commit()
    return res.rowcount or 0
