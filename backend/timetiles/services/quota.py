import datetime as dt
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.orm import Session

from timetiles.core.config import settings
from timetiles.core.constants import QuotaType, UsageType, QUOTA_USAGE
from timetiles.core.logging import logger
from timetiles.db.models.user import UserUsage


@dataclass
class QuotaCheck:
    allowed: bool
    current: int
    limit: int | None
    remaining: int | None


def _limit_for(quota_type: QuotaType) -> int | None:
    limit = {
        QuotaType.url_fetches_per_day: settings.QUOTA_URL_FETCHES_PER_DAY,
        QuotaType.file_uploads_per_day: settings.QUOTA_FILE_UPLOADS_PER_DAY,
        QuotaType.import_jobs_per_day: settings.QUOTA_IMPORT_JOBS_PER_DAY,
    }[quota_type]
    return limit if limit > 0 else None


class QuotaService:
    """Daily per-user counters. Counters reset lazily on the first access of a new UTC day."""

    def __init__(self, db: Session):
        self.db = db

    def _usage(self, owner_id: int) -> UserUsage:
        today = dt.datetime.now(dt.timezone.utc).date()
        usage = (
            self.db.query(UserUsage)
            .filter(UserUsage.user_id == owner_id)
            .populate_existing()
            .one_or_none()
        )
        if usage is None:
            usage = UserUsage(user_id=owner_id, usage_date=today,
                              url_fetches_today=0, file_uploads_today=0, import_jobs_today=0)
            self.db.add(usage)
            self.db.commit()
        elif usage.usage_date != today:
            usage.usage_date = today
            for ut in UsageType:
                setattr(usage, ut.value, 0)
            self.db.commit()
        return usage

    def check_quota(self, quota_type: QuotaType, owner_id: int, amount: int = 1) -> QuotaCheck:
        quota_type = QuotaType(quota_type)
        usage = self._usage(owner_id)
        current = getattr(usage, QUOTA_USAGE[quota_type].value)
        limit = _limit_for(quota_type)
        if limit is None:
            return QuotaCheck(allowed=True, current=current, limit=None, remaining=None)
        return QuotaCheck(
            allowed=current + amount <= limit,
            current=current,
            limit=limit,
            remaining=max(limit - current, 0),
        )

    def increment_usage(self, usage_type: UsageType, owner_id: int, amount: int = 1) -> None:
        usage_type = UsageType(usage_type)
        usage = self._usage(owner_id)
        col = getattr(UserUsage, usage_type.value)
        self.db.execute(update(UserUsage).where(UserUsage.id == usage.id).values({col: col + amount}))
        self.db.commit()
        logger.info("quota_usage_incremented", user_id=owner_id, usage_type=usage_type.value, amount=amount)
