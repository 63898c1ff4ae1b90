import datetime as dt
from sqlalchemy import String, Boolean, Date, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from timetiles.db.base import Base
from timetiles.db.models._mixins import TimestampMixin

class User(Base, TimestampMixin):
    __tablename__ = "user"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(256), unique=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class UserUsage(Base, TimestampMixin):
    """Daily counters backing the quota checks; reset when ``usage_date`` rolls over."""

    __tablename__ = "user_usage"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), unique=True, index=True)
    usage_date: Mapped[dt.date] = mapped_column(Date)

    url_fetches_today: Mapped[int] = mapped_column(Integer, default=0)
    file_uploads_today: Mapped[int] = mapped_column(Integer, default=0)
    import_jobs_today: Mapped[int] = mapped_column(Integer, default=0)
