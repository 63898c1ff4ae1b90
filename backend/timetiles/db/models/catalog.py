from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timetiles.db.base import Base
from timetiles.db.models._mixins import TimestampMixin

class Catalog(Base, TimestampMixin):
    __tablename__ = "catalog"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(256))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    datasets = relationship("Dataset", back_populates="catalog")
