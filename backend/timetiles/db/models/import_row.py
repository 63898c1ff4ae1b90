from sqlalchemy import String, ForeignKey, Integer, Boolean, Float, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from timetiles.db.base import Base

class ImportRow(Base):
    """Parsed row staged between batch processing and event creation."""

    __tablename__ = "import_row"
    # one staged copy per source row; a redelivered batch cannot insert twice
    __table_args__ = (Index("uq_import_row_job_row", "import_job_id", "row_number", unique=True),)

    id: Mapped[int] = mapped_column(primary_key=True)
    import_job_id: Mapped[int] = mapped_column(ForeignKey("import_job.id", ondelete="CASCADE"), index=True)
    batch_number: Mapped[int] = mapped_column(Integer)
    row_number: Mapped[int] = mapped_column(Integer)

    data: Mapped[dict] = mapped_column(JSON)
    unique_id: Mapped[str] = mapped_column(String(64), index=True)
    is_duplicate: Mapped[bool] = mapped_column(Boolean, default=False)
    duplicate_kind: Mapped[str | None] = mapped_column(String(16), nullable=True)  # internal|external

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    geocoded: Mapped[bool] = mapped_column(Boolean, default=False)
