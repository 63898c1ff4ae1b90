from timetiles.core.constants import JobType
from timetiles.jobs.registry import JOB_HANDLERS
from timetiles.worker.celery_app import celery_app
from timetiles.worker.queue import CeleryJobQueue, task_name


class FakeApp:
    def __init__(self):
        self.sent = []

    def send_task(self, name, kwargs=None):
        self.sent.append((name, kwargs))


def test_enqueue_sends_named_task():
    app = FakeApp()
    CeleryJobQueue(app).enqueue("file-parsing", {"import_job_id": 7})
    assert app.sent == [("jobs.file-parsing", {"input": {"import_job_id": 7}})]


def test_every_job_type_has_a_handler():
    assert set(JOB_HANDLERS) == {jt.value for jt in JobType}


def test_lock_cleanup_is_scheduled():
    entry = celery_app.conf.beat_schedule["cleanup-transition-locks"]
    assert entry["task"] == task_name("cleanup-transition-locks")


def test_schedule_check_is_scheduled():
    entry = celery_app.conf.beat_schedule["schedule-manager"]
    assert entry["task"] == task_name("schedule-manager")
    assert entry["kwargs"] == {"input": {}}
