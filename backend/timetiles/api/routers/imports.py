from pathlib import Path

from fastapi import APIRouter, Depends, UploadFile, File, HTTPException, Query, status
from sqlalchemy.orm import Session

from timetiles.core.config import settings
from timetiles.core.constants import JobType, QuotaType, UsageType
from timetiles.core.deps import get_db, get_job_queue
from timetiles.core.errors import ParseError
from timetiles.core.logging import logger
from timetiles.crud.datasets import get_catalog, get_dataset
from timetiles.crud.import_files import create_import_file, find_duplicate_file
from timetiles.crud.import_jobs import get_import_job
from timetiles.schemas.imports import (
    ImportJobProgressOut,
    QueuedOut,
    SchemaApprovalIn,
    SchemaApprovalOut,
    UploadOut,
    UrlImportIn,
)
from timetiles.services.etl.parsing import file_type_from_mime
from timetiles.services.etl.utils import bytes_sha256
from timetiles.services.files import save_bytes, unique_filename
from timetiles.services.quota import QuotaService
from timetiles.services.schema_approval import approve_schema

router = APIRouter()


def _ensure_catalog_exists(db: Session, catalog_id: int):
    if not get_catalog(db, catalog_id):
        raise HTTPException(status_code=404, detail=f"Catalog {catalog_id} not found")


@router.post("/upload", response_model=UploadOut)
def upload_file(
    catalog_id: int = Query(...),
    user_id: int | None = Query(None),
    dataset_id: int | None = Query(None),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    queue=Depends(get_job_queue),
):
    _ensure_catalog_exists(db, catalog_id)
    if dataset_id is not None and not get_dataset(db, dataset_id):
        raise HTTPException(status_code=404, detail=f"Dataset {dataset_id} not found")

    try:
        file_type = file_type_from_mime(file.content_type, file.filename)
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    quota = QuotaService(db)
    if user_id is not None:
        check = quota.check_quota(QuotaType.file_uploads_per_day, user_id)
        if not check.allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Daily upload limit reached ({check.current}/{check.limit})",
            )

    max_size = settings.URL_FETCH_MAX_SIZE_MB * 1024 * 1024
    data = file.file.read(max_size + 1)
    if len(data) > max_size:
        raise HTTPException(status_code=413, detail=f"File too large (max: {max_size} bytes)")
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")

    content_hash = bytes_sha256(data)
    existing = find_duplicate_file(db, catalog_id, content_hash)
    if existing is not None:
        logger.info("upload_duplicate", import_file_id=existing.id, catalog_id=catalog_id)
        return {"import_file": existing, "is_duplicate": True}

    original_name = Path(file.filename or "upload").name
    extension = Path(original_name).suffix or (".csv" if file_type == "csv" else ".xlsx")
    filename = unique_filename("upload", extension)
    path = save_bytes(data, filename)

    import_file = create_import_file(
        db,
        catalog_id=catalog_id,
        user_id=user_id,
        target_dataset_id=dataset_id,
        original_name=original_name,
        filename=filename,
        file_path=str(path),
        content_hash=content_hash,
        mime_type=file.content_type or "application/octet-stream",
        file_size=len(data),
        source="upload",
    )
    if user_id is not None:
        quota.increment_usage(UsageType.file_uploads_today, user_id)

    queue.enqueue(JobType.dataset_detection.value, {"import_file_id": import_file.id})
    logger.info("upload_accepted", import_file_id=import_file.id, file_size=len(data))
    return {"import_file": import_file, "is_duplicate": False}


@router.post("/url", response_model=QueuedOut, status_code=status.HTTP_202_ACCEPTED)
def import_from_url(data: UrlImportIn, db: Session = Depends(get_db), queue=Depends(get_job_queue)):
    _ensure_catalog_exists(db, data.catalog_id)
    queue.enqueue(JobType.url_fetch.value, data.model_dump(exclude_none=True))
    return {"status": "queued", "job_type": JobType.url_fetch.value}


@router.get("/{import_job_id}/progress", response_model=ImportJobProgressOut)
def get_progress(import_job_id: int, db: Session = Depends(get_db)):
    job = get_import_job(db, import_job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Import job not found")
    return job


@router.post("/{import_job_id}/approve-schema", response_model=SchemaApprovalOut)
def post_approve_schema(
    import_job_id: int,
    data: SchemaApprovalIn,
    db: Session = Depends(get_db),
    queue=Depends(get_job_queue),
):
    if not get_import_job(db, import_job_id):
        raise HTTPException(status_code=404, detail="Import job not found")
    # StageTransitionError outside await-approval becomes a 409 in the app handler
    result = approve_schema(db, import_job_id, data.approved_by_id, queue)
    if not result.success:
        raise HTTPException(status_code=409, detail=result.reason)
    return {"import_job_id": import_job_id, "stage": result.to_stage, "queued_job": result.queued_job}
