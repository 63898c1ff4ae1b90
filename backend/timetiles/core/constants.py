from enum import Enum


class ProcessingStage(str, Enum):
    file_parsing = "file-parsing"
    detect_schema = "detect-schema"
    validate_schema = "validate-schema"
    await_approval = "await-approval"
    create_schema_version = "create-schema-version"
    geocode_batch = "geocode-batch"
    create_events = "create-events"
    completed = "completed"
    failed = "failed"


class ImportStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


SCHEDULE_FREQUENCIES = ("hourly", "daily", "weekly", "monthly")


class JobType(str, Enum):
    url_fetch = "url-fetch"
    dataset_detection = "dataset-detection"
    file_parsing = "file-parsing"
    process_batch = "process-batch"
    validate_schema = "validate-schema"
    create_schema_version = "create-schema-version"
    geocode_batch = "geocode-batch"
    create_events = "create-events"
    cleanup_transition_locks = "cleanup-transition-locks"
    schedule_manager = "schedule-manager"


S = ProcessingStage

VALID_STAGE_TRANSITIONS: dict[ProcessingStage, tuple[ProcessingStage, ...]] = {
    S.file_parsing: (S.detect_schema,),
    S.detect_schema: (S.validate_schema,),
    S.validate_schema: (S.await_approval, S.create_schema_version, S.geocode_batch),
    S.await_approval: (S.create_schema_version,),
    S.create_schema_version: (S.geocode_batch,),
    S.geocode_batch: (S.create_events,),
    S.create_events: (S.completed,),
    S.completed: (),
    S.failed: (),
}

# stage entered -> job queued for it
STAGE_JOBS: dict[ProcessingStage, JobType] = {
    S.validate_schema: JobType.validate_schema,
    S.create_schema_version: JobType.create_schema_version,
    S.geocode_batch: JobType.geocode_batch,
    S.create_events: JobType.create_events,
}

# relative time weights for overall progress; zero-weight stages are not counted
STAGE_WEIGHTS: dict[ProcessingStage, int] = {
    S.file_parsing: 10,
    S.detect_schema: 20,
    S.validate_schema: 5,
    S.await_approval: 0,
    S.create_schema_version: 5,
    S.geocode_batch: 25,
    S.create_events: 35,
    S.completed: 0,
    S.failed: 0,
}


class QuotaType(str, Enum):
    url_fetches_per_day = "url_fetches_per_day"
    file_uploads_per_day = "file_uploads_per_day"
    import_jobs_per_day = "import_jobs_per_day"


class UsageType(str, Enum):
    url_fetches_today = "url_fetches_today"
    file_uploads_today = "file_uploads_today"
    import_jobs_today = "import_jobs_today"


QUOTA_USAGE: dict[QuotaType, UsageType] = {
    QuotaType.url_fetches_per_day: UsageType.url_fetches_today,
    QuotaType.file_uploads_per_day: UsageType.file_uploads_today,
    QuotaType.import_jobs_per_day: UsageType.import_jobs_today,
}
