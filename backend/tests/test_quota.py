import datetime as dt

from timetiles.core.config import settings
from timetiles.core.constants import QuotaType, UsageType
from timetiles.db.models.user import UserUsage
from timetiles.services.quota import QuotaService


def test_limit_enforced(db, user, monkeypatch):
    monkeypatch.setattr(settings, "QUOTA_FILE_UPLOADS_PER_DAY", 2)
    quota = QuotaService(db)

    check = quota.check_quota(QuotaType.file_uploads_per_day, user.id)
    assert (check.allowed, check.current, check.limit, check.remaining) == (True, 0, 2, 2)

    quota.increment_usage(UsageType.file_uploads_today, user.id)
    quota.increment_usage(UsageType.file_uploads_today, user.id)

    check = quota.check_quota(QuotaType.file_uploads_per_day, user.id)
    assert not check.allowed
    assert check.remaining == 0
    assert quota.check_quota(QuotaType.url_fetches_per_day, user.id).current == 0


def test_amount_counts_against_limit(db, user, monkeypatch):
    monkeypatch.setattr(settings, "QUOTA_IMPORT_JOBS_PER_DAY", 3)
    quota = QuotaService(db)
    quota.increment_usage(UsageType.import_jobs_today, user.id, amount=2)
    assert quota.check_quota(QuotaType.import_jobs_per_day, user.id).allowed
    assert not quota.check_quota(QuotaType.import_jobs_per_day, user.id, amount=2).allowed


def test_zero_limit_is_unlimited(db, user, monkeypatch):
    monkeypatch.setattr(settings, "QUOTA_URL_FETCHES_PER_DAY", 0)
    quota = QuotaService(db)
    quota.increment_usage(UsageType.url_fetches_today, user.id, amount=500)
    check = quota.check_quota(QuotaType.url_fetches_per_day, user.id)
    assert check.allowed
    assert check.limit is None


def test_counters_reset_on_new_day(db, user):
    quota = QuotaService(db)
    quota.increment_usage(UsageType.url_fetches_today, user.id, amount=5)
    usage = db.query(UserUsage).filter(UserUsage.user_id == user.id).one()
    usage.usage_date = dt.date(2020, 1, 1)
    db.commit()

    assert quota.check_quota(QuotaType.url_fetches_per_day, user.id).current == 0
