import datetime as dt

import pytest

from conftest import FakeResponse, FakeSession
from timetiles.db.models.scheduled_import import ScheduledImport
from timetiles.jobs import schedule_manager
from timetiles.jobs.context import JobContext
from timetiles.jobs.schedule_manager import next_run_after, schedule_manager_job
from timetiles.services import fetch

UTC = dt.timezone.utc
NOW = dt.datetime(2026, 10, 14, 9, 30, tzinfo=UTC)  # a Wednesday


@pytest.fixture
def clock(monkeypatch):
    monkeypatch.setattr(schedule_manager, "now", lambda: NOW)
    return NOW


@pytest.fixture
def make_schedule(db, catalog, user):
    def _make(**fields):
        values = dict(
            name="nightly",
            catalog_id=catalog.id,
            created_by_id=user.id,
            source_url="https://example.com/events.csv",
            frequency="daily",
            auth_config={},
            advanced_options={},
            retry_config={},
            statistics={},
            execution_history=[],
        )
        values.update(fields)
        si = ScheduledImport(**values)
        db.add(si)
        db.commit()
        return si

    return _make


def _run(db, queue):
    return schedule_manager_job(JobContext(job_id="schedules-1", db=db, queue=queue))["output"]


def test_next_run_boundaries():
    assert next_run_after("hourly", NOW) == dt.datetime(2026, 10, 14, 10, 0, tzinfo=UTC)
    assert next_run_after("daily", NOW) == dt.datetime(2026, 10, 15, tzinfo=UTC)
    assert next_run_after("weekly", NOW) == dt.datetime(2026, 10, 18, tzinfo=UTC)
    assert next_run_after("monthly", NOW) == dt.datetime(2026, 11, 1, tzinfo=UTC)


def test_next_run_rolls_over():
    sunday = dt.datetime(2026, 10, 18, 0, 0, tzinfo=UTC)
    assert next_run_after("weekly", sunday) == dt.datetime(2026, 10, 25, tzinfo=UTC)
    assert next_run_after("monthly", dt.datetime(2026, 12, 31, 23, 59, tzinfo=UTC)) == dt.datetime(2027, 1, 1, tzinfo=UTC)
    assert next_run_after("daily", dt.datetime(2026, 10, 14, 9, 30)) == dt.datetime(2026, 10, 15, tzinfo=UTC)
    with pytest.raises(ValueError, match="Invalid frequency"):
        next_run_after("fortnightly", NOW)


def test_due_import_queues_fetch_and_advances(db, queue, clock, make_schedule):
    si = make_schedule(next_run_at=NOW - dt.timedelta(minutes=1))

    out = _run(db, queue)

    assert out == {"checked": 1, "triggered": 1, "errors": 0}
    assert queue.jobs == [("url-fetch", {"source_url": si.source_url, "scheduled_import_id": si.id})]
    db.refresh(si)
    assert si.next_run_at.replace(tzinfo=UTC) == dt.datetime(2026, 10, 15, tzinfo=UTC)

    # the same tick again finds nothing due
    queue.jobs.clear()
    assert _run(db, queue)["triggered"] == 0
    assert queue.jobs == []


def test_first_run_fires_immediately(db, queue, clock, make_schedule):
    make_schedule(frequency="hourly")
    assert _run(db, queue)["triggered"] == 1


def test_next_run_derived_from_last_run(db, queue, clock, make_schedule):
    make_schedule(last_run=NOW - dt.timedelta(minutes=10))
    hourly = make_schedule(name="hourly", frequency="hourly", last_run=NOW - dt.timedelta(hours=2))

    out = _run(db, queue)

    assert out["triggered"] == 1
    assert [p["scheduled_import_id"] for p in queue.of_type("url-fetch")] == [hourly.id]


def test_disabled_and_unscheduled_imports_are_ignored(db, queue, clock, make_schedule):
    make_schedule(enabled=False)
    make_schedule(frequency=None)
    assert _run(db, queue) == {"checked": 0, "triggered": 0, "errors": 0}
    assert queue.jobs == []


def test_invalid_frequency_is_counted_and_skipped(db, queue, clock, make_schedule):
    make_schedule(frequency="fortnightly", next_run_at=NOW - dt.timedelta(hours=1))
    ok = make_schedule(name="ok")

    out = _run(db, queue)

    assert out == {"checked": 2, "triggered": 1, "errors": 1}
    assert queue.of_type("url-fetch") == [{"source_url": ok.source_url, "scheduled_import_id": ok.id}]


def test_triggered_fetch_updates_schedule_history(db, queue, clock, make_schedule, monkeypatch):
    si = make_schedule()
    _run(db, queue)
    session = FakeSession(FakeResponse(b"title,date\nA,2024-01-01\n"))
    monkeypatch.setattr(fetch.requests, "Session", lambda: session)

    queue.drain(db, until="dataset-detection")

    db.refresh(si)
    assert si.last_status == "success"
    assert si.statistics["successful_runs"] == 1
