from sqlalchemy import ForeignKey, Integer, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timetiles.db.base import Base
from timetiles.db.models._mixins import TimestampMixin

class SchemaVersion(Base, TimestampMixin):
    __tablename__ = "schema_version"
    __table_args__ = (UniqueConstraint("dataset_id", "version_number", name="uq_schema_version_dataset_number"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    dataset_id: Mapped[int] = mapped_column(ForeignKey("dataset.id", ondelete="CASCADE"), index=True)
    version_number: Mapped[int] = mapped_column(Integer)

    schema: Mapped[dict] = mapped_column(JSON, default=dict)
    field_metadata: Mapped[dict] = mapped_column(JSON, default=dict)
    field_mappings: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    auto_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    import_sources: Mapped[list] = mapped_column(JSON, default=list)
    event_count_at_creation: Mapped[int] = mapped_column(Integer, default=0)

    dataset = relationship("Dataset", back_populates="schema_versions")
