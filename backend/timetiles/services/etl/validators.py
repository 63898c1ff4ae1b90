import datetime as dt
import re
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from timetiles.core.logging import logger
from timetiles.services.etl.parsing import get_row_value, is_safe_key

MIN_COLUMN_SHARE = 0.5
MAX_INCONSISTENT_SHARE = 0.1

TAG_FIELDS = ("tags", "categories", "keywords", "labels")
MAX_TAGS = 10
_TAG_SPLIT = re.compile(r"[,;|]")


@dataclass
class RowValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    inconsistent_rows: int = 0


def _is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v == "")


def validate_rows(rows: list[dict[str, Any]]) -> RowValidationResult:
    if not rows:
        return RowValidationResult(is_valid=False, errors=["No data rows found in file"])

    errors: list[str] = []
    warnings: list[str] = []

    if not any(not _is_blank(v) for row in rows for v in row.values()):
        errors.append("All data rows appear to be empty")

    reference = set(rows[0].keys())
    if not reference:
        errors.append("No column headers detected")

    inconsistent = 0
    if reference:
        for row in rows:
            # parsers pad short rows with blank cells, so count filled columns
            present = sum(1 for k in reference if not _is_blank(row.get(k)))
            if present < len(reference) * MIN_COLUMN_SHARE:
                inconsistent += 1

        if inconsistent > len(rows) * MAX_INCONSISTENT_SHARE:
            errors.append(
                f"{inconsistent} of {len(rows)} rows have inconsistent column structure "
                f"(fewer than {int(MIN_COLUMN_SHARE * 100)}% of the header columns)"
            )
        elif inconsistent:
            warnings.append(f"{inconsistent} rows are missing most header columns")

    if warnings:
        logger.warning("row_validation_warnings", warnings=warnings, rows=len(rows))

    return RowValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        inconsistent_rows=inconsistent,
    )


def _iso_utc(ts: dt.datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    ts = ts.astimezone(dt.timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def parse_date(value: Any) -> str:
    """Best-effort conversion to a UTC ISO-8601 string; empty or unparseable input yields now."""
    if isinstance(value, dt.datetime):
        return _iso_utc(value)
    if isinstance(value, dt.date):
        return _iso_utc(dt.datetime(value.year, value.month, value.day))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return _iso_utc(dt.datetime.fromtimestamp(value / 1000, tz=dt.timezone.utc))
        except (OverflowError, OSError, ValueError):
            return _iso_utc(dt.datetime.now(dt.timezone.utc))
    if isinstance(value, str) and value.strip():
        try:
            ts = pd.to_datetime(value.strip(), utc=True)
        except (ValueError, TypeError, OverflowError):
            ts = None
        if ts is not None and not pd.isna(ts):
            return _iso_utc(ts.to_pydatetime())
    return _iso_utc(dt.datetime.now(dt.timezone.utc))


def safe_string_value(row: dict, key: str) -> str | None:
    v = get_row_value(row, key)
    if v is None:
        return None
    if isinstance(v, str):
        if v == "":
            return None
        return v.strip()
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (list, tuple)):
        return ",".join(str(x) for x in v)
    return str(v)


def has_valid_property(row: dict, key: str) -> bool:
    if not is_safe_key(key) or key not in row:
        return False
    v = row[key]
    return v is not None and v != ""


def parse_tags_from_row(row: dict) -> list[str]:
    raw = None
    for name in TAG_FIELDS:
        if has_valid_property(row, name):
            raw = row[name]
            break
    if raw is None:
        return []

    parts = raw if isinstance(raw, (list, tuple)) else _TAG_SPLIT.split(str(raw))
    tags: list[str] = []
    for p in parts:
        t = str(p).strip()
        if t and t not in tags:
            tags.append(t)
        if len(tags) >= MAX_TAGS:
            break
    return tags
