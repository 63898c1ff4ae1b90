import datetime as dt
from sqlalchemy import String, ForeignKey, DateTime, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timetiles.core.constants import ProcessingStage, ImportStatus
from timetiles.db.base import Base
from timetiles.db.models._mixins import TimestampMixin

class ImportJob(Base, TimestampMixin):
    __tablename__ = "import_job"

    id: Mapped[int] = mapped_column(primary_key=True)
    import_file_id: Mapped[int] = mapped_column(ForeignKey("import_file.id", ondelete="CASCADE"), index=True)
    dataset_id: Mapped[int] = mapped_column(ForeignKey("dataset.id", ondelete="CASCADE"), index=True)

    stage: Mapped[str] = mapped_column(String(32), default=ProcessingStage.file_parsing.value, index=True)
    status: Mapped[str] = mapped_column(String(32), default=ImportStatus.pending.value)

    rows_total: Mapped[int] = mapped_column(Integer, default=0)
    rows_processed: Mapped[int] = mapped_column(Integer, default=0)
    duplicate_rows: Mapped[int] = mapped_column(Integer, default=0)
    error_rows: Mapped[int] = mapped_column(Integer, default=0)
    batches_total: Mapped[int] = mapped_column(Integer, default=0)
    events_created: Mapped[int] = mapped_column(Integer, default=0)

    duplicates: Mapped[dict] = mapped_column(JSON, default=dict)
    progress: Mapped[dict] = mapped_column(JSON, default=dict)
    schema: Mapped[dict] = mapped_column(JSON, default=dict)
    detection: Mapped[dict] = mapped_column(JSON, default=dict)
    schema_validation: Mapped[dict] = mapped_column(JSON, default=dict)
    geocoding: Mapped[dict] = mapped_column(JSON, default=dict)
    error_log: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    dataset_schema_version_id: Mapped[int | None] = mapped_column(
        ForeignKey("schema_version.id", ondelete="SET NULL"), nullable=True
    )

    started_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    import_file = relationship("ImportFile", back_populates="import_jobs")
    dataset = relationship("Dataset")
    dataset_schema_version = relationship("SchemaVersion")
