import pytest

from conftest import FakeResponse, FakeSession
from timetiles.core.config import settings
from timetiles.core.errors import JobContextError
from timetiles.db.models.import_file import ImportFile
from timetiles.db.models.scheduled_import import ScheduledImport
from timetiles.jobs.context import JobContext
from timetiles.jobs.url_fetch import url_fetch_job
from timetiles.services import fetch

CSV = b"title,date\nEvent 1,2024-03-15\nEvent 2,2024-03-16\n"


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(fetch.time, "sleep", lambda s: None)


@pytest.fixture
def remote(monkeypatch):
    def _serve(*replies):
        session = FakeSession(*replies)
        monkeypatch.setattr(fetch.requests, "Session", lambda: session)
        return session
    return _serve


@pytest.fixture
def scheduled(db, catalog, dataset, user):
    si = ScheduledImport(
        name="nightly",
        catalog_id=catalog.id,
        dataset_id=dataset.id,
        created_by_id=user.id,
        source_url="https://example.com/events.csv",
        auth_config={"type": "bearer", "bearer_token": "secret"},
        advanced_options={},
        retry_config={"max_retries": 0},
        statistics={},
        execution_history=[],
    )
    db.add(si)
    db.commit()
    return si


def _run(db, queue, **inp):
    return url_fetch_job(JobContext(input=inp, job_id="fetch-1", db=db, queue=queue))["output"]


def test_fetch_creates_import_file_and_queues_detection(db, queue, remote, catalog, user):
    session = remote(FakeResponse(CSV))
    out = _run(db, queue, source_url="https://example.com/events.csv", catalog_id=catalog.id, user_id=user.id,
               auth_config={"type": "api-key", "api_key": "k"})

    assert out["success"] and not out["is_duplicate"]
    f = db.get(ImportFile, out["import_file_id"])
    assert f.source == "url"
    assert f.original_name == "events.csv"
    assert f.mime_type == "text/csv"
    assert f.auth_type == "api-key"
    assert f.file_size == len(CSV)
    assert queue.jobs == [("dataset-detection", {"import_file_id": f.id})]
    assert session.calls[0]["headers"] == {"X-API-Key": "k"}


def test_duplicate_content_reuses_existing_file(db, queue, remote, catalog, scheduled):
    remote(FakeResponse(CSV))
    first = _run(db, queue, source_url=scheduled.source_url, scheduled_import_id=scheduled.id)
    queue.jobs.clear()

    second = _run(db, queue, source_url=scheduled.source_url, scheduled_import_id=scheduled.id)

    assert second["is_duplicate"]
    assert second["import_file_id"] == first["import_file_id"]
    assert second["skipped_reason"] == "Duplicate content detected"
    assert queue.jobs == []
    assert db.query(ImportFile).count() == 1
    assert scheduled.statistics["successful_runs"] == 2
    assert scheduled.last_status == "success"


def test_skip_duplicate_checking_creates_new_file(db, queue, remote, catalog):
    remote(FakeResponse(CSV))
    a = _run(db, queue, source_url="https://example.com/e.csv", catalog_id=catalog.id)
    b = _run(db, queue, source_url="https://example.com/e.csv", catalog_id=catalog.id,
             advanced_options={"skip_duplicate_checking": True})
    assert a["import_file_id"] != b["import_file_id"]
    assert db.get(ImportFile, b["import_file_id"]).processing_options["skip_duplicate_checking"] is True


def test_too_large_fails_and_records_schedule_failure(db, queue, remote, scheduled):
    scheduled.advanced_options = {"max_file_size_mb": 1}
    db.commit()
    session = remote(FakeResponse(b"x", headers={"content-length": str(5 * 1024 * 1024)}))

    out = _run(db, queue, source_url=scheduled.source_url, scheduled_import_id=scheduled.id)

    assert not out["success"]
    assert out["error_kind"] == "too_large"
    assert "File too large" in out["error"]
    assert len(session.calls) == 1
    assert queue.jobs == []
    assert scheduled.last_status == "failed"
    assert scheduled.statistics["failed_runs"] == 1
    assert scheduled.current_retries == 1
    assert scheduled.execution_history[0]["status"] == "failed"


def test_scheduled_auth_and_history_cap(db, queue, remote, scheduled):
    session = remote(FakeResponse(CSV))
    scheduled.execution_history = [{"status": "success"}] * 10
    db.commit()

    _run(db, queue, source_url=scheduled.source_url, scheduled_import_id=scheduled.id)

    assert session.calls[0]["headers"] == {"Authorization": "Bearer secret"}
    assert len(scheduled.execution_history) == 10
    assert "import_file_id" in scheduled.execution_history[0]


def test_daily_quota(db, queue, remote, catalog, user, monkeypatch):
    monkeypatch.setattr(settings, "QUOTA_URL_FETCHES_PER_DAY", 1)
    session = remote(FakeResponse(CSV))
    assert _run(db, queue, source_url="https://example.com/a.csv", catalog_id=catalog.id, user_id=user.id)["success"]

    out = _run(db, queue, source_url="https://example.com/b.csv", catalog_id=catalog.id, user_id=user.id)

    assert not out["success"]
    assert out["error_kind"] == "quota"
    assert "Daily URL fetch limit reached (1/1)" in out["error"]
    assert len(session.calls) == 1


def test_source_url_required(db, queue):
    with pytest.raises(JobContextError, match="Source URL is required"):
        url_fetch_job(JobContext(input={}, db=db, queue=queue))


def test_db_required():
    with pytest.raises(JobContextError, match="Database session not found"):
        url_fetch_job(JobContext(input={"source_url": "https://example.com"}))
