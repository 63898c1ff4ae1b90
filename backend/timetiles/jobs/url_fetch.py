import time
from pathlib import PurePosixPath
from urllib.parse import urlparse

from timetiles.core.config import settings
from timetiles.core.constants import JobType, QuotaType, UsageType
from timetiles.core.errors import JobContextError, QuotaExceededError
from timetiles.core.logging import job_logger
from timetiles.crud.import_files import find_duplicate_file, create_import_file
from timetiles.crud.scheduled_imports import get_scheduled_import, record_success, record_failure
from timetiles.db.models.scheduled_import import ScheduledImport
from timetiles.jobs.context import JobContext
from timetiles.services.fetch import (
    CONTENT_TYPES,
    build_auth_headers,
    calculate_data_hash,
    detect_file_type,
    fetch_with_retry,
)
from timetiles.services.files import save_bytes, unique_filename
from timetiles.services.quota import QuotaService


def load_scheduled_import(db, scheduled_import_id, log) -> ScheduledImport | None:
    if not scheduled_import_id:
        return None
    si = get_scheduled_import(db, int(scheduled_import_id))
    if si is None:
        log.warning("scheduled_import_missing", scheduled_import_id=scheduled_import_id)
        return None
    if not si.enabled:
        log.info("scheduled_import_disabled", scheduled_import_id=si.id)
        return None
    return si


def _original_name(source_url: str) -> str:
    name = PurePosixPath(urlparse(source_url).path).name
    return name or "url-import"


def _resolve_type(expected: str | None, content_type: str | None, data: bytes, source_url: str) -> tuple[str, str]:
    if expected:
        normalized = expected.split(";")[0].strip().lower()
        if normalized in CONTENT_TYPES:
            return CONTENT_TYPES[normalized]
    return detect_file_type(content_type, data, source_url)


def url_fetch_job(ctx: JobContext) -> dict:
    db = ctx.require_db()
    inp = ctx.input or {}
    source_url = inp.get("source_url")
    if not source_url:
        raise JobContextError("Source URL is required for url fetch job")

    log = job_logger(JobType.url_fetch.value, ctx.job_id, source_url=source_url,
                     scheduled_import_id=inp.get("scheduled_import_id"))
    log.info("url_fetch_started")
    started = time.monotonic()
    scheduled = load_scheduled_import(db, inp.get("scheduled_import_id"), log)

    try:
        user_id = inp.get("user_id") or (scheduled.created_by_id if scheduled else None)
        if user_id:
            quota = QuotaService(db)
            check = quota.check_quota(QuotaType.url_fetches_per_day, user_id)
            if not check.allowed:
                raise QuotaExceededError(
                    f"Daily URL fetch limit reached ({check.current}/{check.limit}). Resets at midnight UTC."
                )
            quota.increment_usage(UsageType.url_fetches_today, user_id)
            log.info("url_fetch_quota_tracked", user_id=user_id, remaining=check.remaining)

        options = dict(scheduled.advanced_options or {}) if scheduled else {}
        options.update(inp.get("advanced_options") or {})
        auth_config = inp.get("auth_config") or (scheduled.auth_config if scheduled else None) or {}
        retry_config = (scheduled.retry_config if scheduled else None) or inp.get("retry_config")

        timeout_s = float(options.get("timeout_minutes") or settings.URL_FETCH_TIMEOUT_MINUTES) * 60
        max_size = int(float(options.get("max_file_size_mb") or settings.URL_FETCH_MAX_SIZE_MB) * 1024 * 1024)

        result = fetch_with_retry(
            source_url,
            headers=build_auth_headers(auth_config),
            timeout_s=timeout_s,
            max_size=max_size,
            retry_config=retry_config,
        )
        log.info("url_fetch_succeeded", content_length=result.content_length, attempts=result.attempts)

        content_hash = calculate_data_hash(result.data)
        catalog_id = inp.get("catalog_id") or (scheduled.catalog_id if scheduled else None)

        if not options.get("skip_duplicate_checking"):
            existing = find_duplicate_file(db, catalog_id, content_hash)
            if existing is not None:
                log.info("url_fetch_duplicate", import_file_id=existing.id, content_hash=content_hash)
                if scheduled:
                    record_success(db, scheduled, existing.id, time.monotonic() - started)
                return {
                    "output": {
                        "success": True,
                        "is_duplicate": True,
                        "import_file_id": existing.id,
                        "filename": existing.filename,
                        "content_hash": content_hash,
                        "skipped_reason": "Duplicate content detected",
                    }
                }

        mime_type, extension = _resolve_type(options.get("expected_content_type"), result.content_type,
                                             result.data, source_url)
        filename = unique_filename("url-import", extension)
        path = save_bytes(result.data, filename)

        import_file = create_import_file(
            db,
            catalog_id=catalog_id,
            user_id=user_id,
            scheduled_import_id=scheduled.id if scheduled else None,
            target_dataset_id=inp.get("dataset_id") or (scheduled.dataset_id if scheduled else None),
            original_name=inp.get("original_name") or _original_name(source_url),
            filename=filename,
            file_path=str(path),
            content_hash=content_hash,
            mime_type=mime_type,
            file_size=len(result.data),
            source="url",
            source_url=source_url,
            auth_type=auth_config.get("type") or "none",
            processing_options={
                "skip_duplicate_checking": bool(options.get("skip_duplicate_checking")),
                "auto_approve_schema": bool(options.get("auto_approve_schema")),
            },
        )
        ctx.enqueue(JobType.dataset_detection.value, {"import_file_id": import_file.id})

        if scheduled:
            record_success(db, scheduled, import_file.id, time.monotonic() - started)

        log.info("url_fetch_import_file_created", import_file_id=import_file.id, file_size=import_file.file_size)
        return {
            "output": {
                "success": True,
                "is_duplicate": False,
                "import_file_id": import_file.id,
                "filename": filename,
                "content_hash": content_hash,
                "content_type": mime_type,
                "file_size": import_file.file_size,
                "attempts": result.attempts,
            }
        }
    except Exception as e:
        log.exception("url_fetch_failed", error=str(e))
        db.rollback()
        if scheduled:
            try:
                record_failure(db, scheduled, str(e))
            except Exception as e2:
                log.exception("scheduled_import_failure_update_failed", error=str(e2))
        return {"output": {"success": False, "error": str(e), "error_kind": getattr(e, "kind", "internal")}}
