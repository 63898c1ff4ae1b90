import datetime as dt
from typing import Any
from pydantic import BaseModel, ConfigDict, Field


class ImportFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    catalog_id: int | None
    original_name: str
    filename: str
    content_hash: str
    mime_type: str
    file_size: int
    source: str


class UploadOut(BaseModel):
    import_file: ImportFileOut
    is_duplicate: bool


class AuthConfigIn(BaseModel):
    type: str = Field(default="none", pattern="^(none|api-key|bearer|basic)$")
    api_key: str | None = None
    api_key_header: str | None = None
    bearer_token: str | None = None
    username: str | None = None
    password: str | None = None
    custom_headers: dict[str, str] | str | None = None


class UrlImportIn(BaseModel):
    source_url: str
    catalog_id: int
    dataset_id: int | None = None
    user_id: int | None = None
    original_name: str | None = None
    auth_config: AuthConfigIn | None = None
    advanced_options: dict[str, Any] | None = None


class QueuedOut(BaseModel):
    status: str
    job_type: str


class ImportJobProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    import_file_id: int
    dataset_id: int
    stage: str
    status: str
    rows_total: int
    rows_processed: int
    duplicate_rows: int
    events_created: int
    progress: dict
    duplicates: dict
    schema_validation: dict
    error_log: dict | None
    dataset_schema_version_id: int | None
    started_at: dt.datetime | None
    finished_at: dt.datetime | None


class SchemaApprovalIn(BaseModel):
    approved_by_id: int | None = None


class SchemaApprovalOut(BaseModel):
    import_job_id: int
    stage: str
    queued_job: str | None
