from timetiles.core.constants import JobType, ProcessingStage
from timetiles.core.errors import ImportValidationError, StageTransitionError
from timetiles.core.logging import job_logger
from timetiles.crud.import_jobs import get_import_job, list_import_rows, update_import_job
from timetiles.jobs.context import JobContext, fail_import_job
from timetiles.services import progress
from timetiles.services.etl.geo import row_coordinates
from timetiles.services.etl.parsing import get_row_value
from timetiles.services.etl.utils import norm_str
from timetiles.services.geocoding import GeocodingService
from timetiles.services.stage_transition import StageTransitionService


def geocode_batch_job(ctx: JobContext) -> dict:
    db = ctx.require_db()
    import_job_id = ctx.require_id("import_job_id", "Import Job ID is required for geocoding job")
    log = job_logger(JobType.geocode_batch.value, ctx.job_id, import_job_id=import_job_id)
    log.info("geocoding_started")

    try:
        job = get_import_job(db, import_job_id)
        if job is None:
            raise ImportValidationError([f"Import job not found: {import_job_id}"])
        detection = job.detection or {}
        kind = detection.get("type")
        rows = list_import_rows(db, import_job_id, include_duplicates=False)
        stats = {"source": kind, "located": 0, "failed": 0, "unique_addresses": 0}
        geocoder = GeocodingService()

        if kind in ("separate", "combined"):
            progress.start_stage(db, import_job_id, ProcessingStage.geocode_batch, len(rows))
            for r in rows:
                coords = row_coordinates(r.data, detection)
                if coords:
                    r.latitude, r.longitude = coords
                    stats["located"] += 1
                else:
                    stats["failed"] += 1
            db.commit()
            progress.complete_stage(db, import_job_id, ProcessingStage.geocode_batch)
        elif kind == "address" and geocoder.enabled:
            column = detection.get("address_column")
            by_address: dict[str, list] = {}
            for r in rows:
                address = norm_str(get_row_value(r.data, column))
                if address:
                    by_address.setdefault(address, []).append(r)
            stats["unique_addresses"] = len(by_address)

            progress.start_stage(db, import_job_id, ProcessingStage.geocode_batch, len(by_address))
            for address, matched in by_address.items():
                coords = geocoder.geocode(address)
                if coords:
                    for r in matched:
                        r.latitude, r.longitude = coords
                        r.geocoded = True
                    stats["located"] += len(matched)
                else:
                    stats["failed"] += len(matched)
                db.commit()
                progress.advance(db, import_job_id, ProcessingStage.geocode_batch, 1)
            progress.complete_stage(db, import_job_id, ProcessingStage.geocode_batch)
        else:
            progress.skip_stage(db, import_job_id, ProcessingStage.geocode_batch)
            stats["source"] = None

        update_import_job(db, import_job_id, geocoding=stats)
        result = StageTransitionService.transition(db, import_job_id, ProcessingStage.create_events, ctx.queue)
        if not result.success:
            raise StageTransitionError(result.reason)
        log.info("geocoding_finished", **stats)
        return {"output": stats}
    except Exception as e:
        fail_import_job(ctx, import_job_id, e, "geocoding", log)
        raise
