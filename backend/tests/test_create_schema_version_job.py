import pytest

from timetiles.core.errors import JobContextError, SchemaCreationError
from timetiles.crud.import_jobs import get_import_job, update_import_job
from timetiles.jobs import create_schema_version as job_module
from timetiles.jobs.context import JobContext
from timetiles.services.schema_versioning import create_schema_version

SCHEMA = {"title": {"type": "string", "occurrences": 1, "null_count": 0, "unique_count": 1,
                    "sample_values": ["A"]}}


@pytest.fixture
def versions(monkeypatch):
    calls = []

    def record(*args, **kwargs):
        calls.append(kwargs)
        return create_schema_version(*args, **kwargs)

    monkeypatch.setattr(job_module, "create_schema_version", record)
    return calls


def _run(db, queue, job_id):
    ctx = JobContext(input={"import_job_id": job_id}, db=db, queue=queue)
    return job_module.create_schema_version_job(ctx)["output"]


def test_skips_when_version_already_linked(db, queue, dataset, make_import_job, versions):
    existing = create_schema_version(db, dataset.id, schema={}, field_metadata={}, auto_approved=True)
    job = make_import_job(stage="create-schema-version")
    update_import_job(db, job.id, dataset_schema_version_id=existing.id, schema=SCHEMA)

    assert _run(db, queue, job.id) == {"skipped": True}
    assert versions == []
    assert queue.jobs == []


def test_skips_until_approved(db, queue, make_import_job, versions):
    job = make_import_job(stage="create-schema-version")
    update_import_job(db, job.id, schema=SCHEMA,
                      schema_validation={"requires_approval": True, "approved": False})

    assert _run(db, queue, job.id) == {"skipped": True}
    assert versions == []


def test_creates_version_and_moves_on(db, queue, make_import_job, versions):
    job = make_import_job(stage="create-schema-version")
    update_import_job(db, job.id, schema=SCHEMA, rows_total=3, duplicate_rows=1,
                      schema_validation={"requires_approval": False, "approved": True},
                      detection={"field_mappings": {"title": "title"}})

    out = _run(db, queue, job.id)

    assert out["version_number"] == 1
    assert versions[0]["auto_approved"] is True
    assert versions[0]["import_sources"] == [{"import_job_id": job.id, "record_count": 2}]
    assert versions[0]["schema"]["required"] == ["title"]
    job = get_import_job(db, job.id)
    assert job.dataset_schema_version_id == out["schema_version_id"]
    assert job.stage == "geocode-batch"
    assert queue.jobs == [("geocode-batch", {"import_job_id": job.id})]


def test_failure_is_recorded(db, queue, make_import_job, monkeypatch):
    def boom(*args, **kwargs):
        raise SchemaCreationError("version table unavailable")

    monkeypatch.setattr(job_module, "create_schema_version", boom)
    job = make_import_job(stage="create-schema-version")
    update_import_job(db, job.id, schema=SCHEMA, schema_validation={"requires_approval": False})

    with pytest.raises(SchemaCreationError):
        _run(db, queue, job.id)

    job = get_import_job(db, job.id)
    assert job.stage == "failed"
    assert job.error_log["context"] == "schema version creation"
    assert job.error_log["error"] == "version table unavailable"


def test_job_id_required(db, queue):
    with pytest.raises(JobContextError, match="Import Job ID is required for schema version creation job"):
        job_module.create_schema_version_job(JobContext(input={}, db=db, queue=queue))
