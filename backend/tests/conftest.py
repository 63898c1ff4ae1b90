import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "test")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from timetiles.core.config import settings
from timetiles.db.base import Base
import timetiles.db.models  # noqa: F401
from timetiles.db.models.catalog import Catalog
from timetiles.db.models.dataset import Dataset
from timetiles.db.models.user import User
from timetiles.jobs.context import JobContext
from timetiles.jobs.registry import JOB_HANDLERS
from timetiles.services.stage_transition import StageTransitionService


class RecordingQueue:
    def __init__(self):
        self.jobs = []

    def enqueue(self, job_type, payload):
        self.jobs.append((job_type, payload))

    def of_type(self, job_type):
        return [p for t, p in self.jobs if t == job_type]

    def drain(self, db, reverse_batches=False, until=None):
        """Run queued jobs in-process until the queue is empty; returns the outputs in run order."""
        results = []
        while self.jobs:
            if reverse_batches and self.jobs[-1][0] == "process-batch":
                job_type, payload = self.jobs.pop()
            else:
                job_type, payload = self.jobs.pop(0)
            if until is not None and job_type == until:
                self.jobs.insert(0, (job_type, payload))
                break
            ctx = JobContext(input=payload, job_id=f"test-{len(results)}", db=db, queue=self)
            results.append((job_type, JOB_HANDLERS[job_type](ctx)))
        return results


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    s = Session()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    d = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(d))
    return d


@pytest.fixture(autouse=True)
def _clear_transition_locks():
    StageTransitionService.clear_all()
    yield
    StageTransitionService.clear_all()


@pytest.fixture
def catalog(db):
    c = Catalog(name="Events")
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def dataset(db, catalog):
    ds = Dataset(catalog_id=catalog.id, name="concerts", schema_config={})
    db.add(ds)
    db.commit()
    return ds


@pytest.fixture
def user(db):
    u = User(email="importer@example.com", full_name="Importer")
    db.add(u)
    db.commit()
    return u


class FakeResponse:
    def __init__(self, body=b"", status_code=200, headers=None, reason="OK", chunk_size=None):
        self.body = body
        self.status_code = status_code
        self.headers = headers if headers is not None else {"content-type": "text/csv"}
        self.reason = reason
        self.chunk_size = chunk_size

    def iter_content(self, chunk_size=1):
        size = self.chunk_size or chunk_size
        for i in range(0, len(self.body), size):
            yield self.body[i:i + size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Stands in for requests.Session; replies are consumed in order, exceptions are raised."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def get(self, url, headers=None, stream=False, timeout=None, **kwargs):
        self.calls.append({"url": url, "headers": headers or {}, "timeout": timeout})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def make_import_file(db, catalog, user):
    from timetiles.crud.import_files import create_import_file
    from timetiles.services.etl.utils import bytes_sha256
    from timetiles.services.files import save_bytes, unique_filename

    def _make(data: bytes, name="events.csv", mime="text/csv", dataset=None, **options):
        filename = unique_filename("upload", name.rsplit(".", 1)[-1])
        path = save_bytes(data, filename)
        return create_import_file(
            db,
            catalog_id=catalog.id,
            user_id=user.id,
            target_dataset_id=dataset.id if dataset else None,
            original_name=name,
            filename=filename,
            file_path=str(path),
            content_hash=bytes_sha256(data),
            mime_type=mime,
            file_size=len(data),
            source="upload",
            processing_options=options,
        )

    return _make


@pytest.fixture
def make_import_job(db, dataset, make_import_file):
    from timetiles.crud.import_jobs import create_import_job, update_import_job

    def _make(data: bytes = b"title,date\nA,2024-01-01\n", stage=None, **options):
        f = make_import_file(data, dataset=dataset, **options)
        job = create_import_job(db, f.id, dataset.id)
        if stage is not None:
            job = update_import_job(db, job.id, stage=stage)
        return job

    return _make
