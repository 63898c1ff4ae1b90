from timetiles.db.session import SessionLocal
from timetiles.worker.queue import CeleryJobQueue


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_job_queue():
    return CeleryJobQueue()
