import datetime as dt
from sqlalchemy import String, ForeignKey, DateTime, Integer, Boolean, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column

from timetiles.db.base import Base
from timetiles.db.models._mixins import TimestampMixin

class ScheduledImport(Base, TimestampMixin):
    __tablename__ = "scheduled_import"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(256))
    catalog_id: Mapped[int | None] = mapped_column(ForeignKey("catalog.id", ondelete="SET NULL"), nullable=True)
    dataset_id: Mapped[int | None] = mapped_column(ForeignKey("dataset.id", ondelete="SET NULL"), nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    source_url: Mapped[str] = mapped_column(String(2048))
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    frequency: Mapped[str | None] = mapped_column(String(16), nullable=True)  # hourly|daily|weekly|monthly
    next_run_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    auth_config: Mapped[dict] = mapped_column(JSON, default=dict)
    advanced_options: Mapped[dict] = mapped_column(JSON, default=dict)
    retry_config: Mapped[dict] = mapped_column(JSON, default=dict)
    statistics: Mapped[dict] = mapped_column(JSON, default=dict)
    execution_history: Mapped[list] = mapped_column(JSON, default=list)

    last_run: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_retries: Mapped[int] = mapped_column(Integer, default=0)
