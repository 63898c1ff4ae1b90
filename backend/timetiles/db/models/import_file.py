from sqlalchemy import String, ForeignKey, Integer, Boolean, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timetiles.db.base import Base
from timetiles.db.models._mixins import TimestampMixin

class ImportFile(Base, TimestampMixin):
    __tablename__ = "import_file"
    # no unique constraint on (catalog_id, content_hash): dedupe is check-then-create
    __table_args__ = (Index("ix_import_file_catalog_hash", "catalog_id", "content_hash"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    catalog_id: Mapped[int | None] = mapped_column(ForeignKey("catalog.id", ondelete="SET NULL"), nullable=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    scheduled_import_id: Mapped[int | None] = mapped_column(
        ForeignKey("scheduled_import.id", ondelete="SET NULL"), nullable=True
    )
    target_dataset_id: Mapped[int | None] = mapped_column(ForeignKey("dataset.id", ondelete="SET NULL"), nullable=True)

    original_name: Mapped[str] = mapped_column(String(512))
    filename: Mapped[str] = mapped_column(String(512))
    file_path: Mapped[str] = mapped_column(String(1024))
    content_hash: Mapped[str] = mapped_column(String(64))
    mime_type: Mapped[str] = mapped_column(String(128))
    file_size: Mapped[int] = mapped_column(Integer)

    source: Mapped[str] = mapped_column(String(16), default="upload")  # upload|url
    source_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    auth_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    is_duplicate: Mapped[bool] = mapped_column(Boolean, default=False)
    # {"skip_duplicate_checking": bool, "auto_approve_schema": bool}
    processing_options: Mapped[dict] = mapped_column(JSON, default=dict)

    import_jobs = relationship("ImportJob", back_populates="import_file")
