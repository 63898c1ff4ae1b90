import datetime as dt
from sqlalchemy import String, ForeignKey, DateTime, Float, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from timetiles.db.base import Base
from timetiles.db.models._mixins import TimestampMixin

class Event(Base, TimestampMixin):
    __tablename__ = "event"
    __table_args__ = (Index("ix_event_dataset_unique", "dataset_id", "unique_id"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    dataset_id: Mapped[int] = mapped_column(ForeignKey("dataset.id", ondelete="CASCADE"), index=True)
    import_job_id: Mapped[int | None] = mapped_column(ForeignKey("import_job.id", ondelete="SET NULL"), nullable=True)
    schema_version_id: Mapped[int | None] = mapped_column(
        ForeignKey("schema_version.id", ondelete="SET NULL"), nullable=True
    )

    unique_id: Mapped[str] = mapped_column(String(64))
    data: Mapped[dict] = mapped_column(JSON)
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    event_timestamp: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    tags: Mapped[list] = mapped_column(JSON, default=list)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
