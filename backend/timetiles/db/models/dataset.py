from sqlalchemy import String, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timetiles.db.base import Base
from timetiles.db.models._mixins import TimestampMixin

class Dataset(Base, TimestampMixin):
    __tablename__ = "dataset"
    __table_args__ = (UniqueConstraint("catalog_id", "name", name="uq_dataset_catalog_name"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    catalog_id: Mapped[int] = mapped_column(ForeignKey("catalog.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(256))

    # {"auto_approve_non_breaking": bool, "locked": bool}
    schema_config: Mapped[dict] = mapped_column(JSON, default=dict)

    catalog = relationship("Catalog", back_populates="datasets")
    schema_versions = relationship("SchemaVersion", back_populates="dataset", order_by="SchemaVersion.version_number")
