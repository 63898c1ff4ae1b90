from timetiles.jobs.context import JobContext
from timetiles.jobs.maintenance import cleanup_transition_locks_job
from timetiles.services.stage_transition import StageTransitionService


def test_cleanup_releases_stuck_locks():
    for job_id in ("job-1", "job-2", "job-3"):
        assert StageTransitionService.try_acquire(job_id)

    out = cleanup_transition_locks_job(JobContext(job_id="cleanup-1"))["output"]

    assert out == {"transition_locks_cleaned": 3, "total_cleaned": 3}
    assert StageTransitionService.try_acquire("job-2")


def test_cleanup_without_context():
    assert cleanup_transition_locks_job()["output"]["total_cleaned"] == 0
