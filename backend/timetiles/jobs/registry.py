from timetiles.core.constants import JobType
from timetiles.jobs.create_events import create_events_job
from timetiles.jobs.create_schema_version import create_schema_version_job
from timetiles.jobs.dataset_detection import dataset_detection_job
from timetiles.jobs.file_parsing import file_parsing_job
from timetiles.jobs.geocode_batch import geocode_batch_job
from timetiles.jobs.maintenance import cleanup_transition_locks_job
from timetiles.jobs.process_batch import process_batch_job
from timetiles.jobs.schedule_manager import schedule_manager_job
from timetiles.jobs.url_fetch import url_fetch_job
from timetiles.jobs.validate_schema import validate_schema_job

JOB_HANDLERS = {
    JobType.url_fetch.value: url_fetch_job,
    JobType.dataset_detection.value: dataset_detection_job,
    JobType.file_parsing.value: file_parsing_job,
    JobType.process_batch.value: process_batch_job,
    JobType.validate_schema.value: validate_schema_job,
    JobType.create_schema_version.value: create_schema_version_job,
    JobType.geocode_batch.value: geocode_batch_job,
    JobType.create_events.value: create_events_job,
    JobType.cleanup_transition_locks.value: cleanup_transition_locks_job,
    JobType.schedule_manager.value: schedule_manager_job,
}
