from timetiles.core.constants import ProcessingStage as S
from timetiles.crud.import_jobs import get_import_job
from timetiles.services import progress


def test_overall_percentage_ignores_skipped_and_zero_weight():
    assert progress.overall_percentage({}) == 0.0
    stages = {"file-parsing": {"status": "completed"}}
    assert progress.overall_percentage(stages) == 10.0
    stages["create-schema-version"] = {"status": "skipped"}
    assert progress.overall_percentage(stages) == round(10 / 95 * 100, 2)


def test_stage_lifecycle(db, make_import_job):
    job = make_import_job()
    progress.start_stage(db, job.id, S.detect_schema, 10)
    progress.advance(db, job.id, S.detect_schema, 4)
    rec = progress.advance(db, job.id, S.detect_schema, 20)
    assert rec["processed"] == 10
    assert rec["status"] == "in_progress"

    rec = progress.complete_stage(db, job.id, S.detect_schema)
    assert rec["status"] == "completed"
    assert rec["completed_at"] is not None

    stored = get_import_job(db, job.id).progress
    assert stored["current_stage"] == "detect-schema"
    assert stored["stages"]["detect-schema"]["processed"] == 10


def test_negative_delta_ignored(db, make_import_job):
    job = make_import_job()
    progress.start_stage(db, job.id, S.create_events, 5)
    progress.advance(db, job.id, S.create_events, 3)
    assert progress.advance(db, job.id, S.create_events, -2)["processed"] == 3


def test_overall_never_decreases(db, make_import_job):
    job = make_import_job()
    progress.start_stage(db, job.id, S.detect_schema, 10)
    progress.advance(db, job.id, S.detect_schema, 5)
    before = get_import_job(db, job.id).progress["overall_percentage"]
    assert before == 10.0

    # a larger total lowers the raw fraction of the stage
    progress.start_stage(db, job.id, S.detect_schema, 1000)
    assert get_import_job(db, job.id).progress["overall_percentage"] == before


def test_skip_stage_keeps_completed(db, make_import_job):
    job = make_import_job()
    progress.start_stage(db, job.id, S.geocode_batch, 1)
    progress.complete_stage(db, job.id, S.geocode_batch)
    assert progress.skip_stage(db, job.id, S.geocode_batch)["status"] == "completed"
    assert progress.skip_stage(db, job.id, S.create_schema_version)["status"] == "skipped"


def test_restart_with_smaller_total_keeps_processed(db, make_import_job):
    job = make_import_job()
    progress.start_stage(db, job.id, S.detect_schema, 10)
    progress.advance(db, job.id, S.detect_schema, 5)

    rec = progress.start_stage(db, job.id, S.detect_schema, 3)
    assert rec["processed"] == 5
    assert rec["total"] == 5
    assert rec["status"] == "in_progress"
