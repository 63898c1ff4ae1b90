"""Typed per-column statistics gathered while parsing, and schema comparison between versions."""
import datetime as dt
import re
from dataclasses import dataclass, field, asdict
from typing import Any

import pandas as pd

SAMPLE_SIZE = 5

_INT_RE = re.compile(r"^[+-]?\d+$")
_NUM_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?)?$")
_BOOL_WORDS = ("true", "false")


@dataclass
class FieldStats:
    type: str
    occurrences: int = 0
    null_count: int = 0
    unique_count: int = 0
    sample_values: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "FieldStats":
        return cls(
            type=d.get("type", "empty"),
            occurrences=int(d.get("occurrences", 0)),
            null_count=int(d.get("null_count", 0)),
            unique_count=int(d.get("unique_count", 0)),
            sample_values=list(d.get("sample_values", [])),
        )


SchemaSummary = dict[str, FieldStats]


def summary_to_dict(summary: SchemaSummary) -> dict:
    return {name: stats.to_dict() for name, stats in summary.items()}


def summary_from_dict(d: dict | None) -> SchemaSummary:
    return {name: FieldStats.from_dict(v) for name, v in (d or {}).items()}


def value_type(v: Any) -> str | None:
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    if isinstance(v, float) and pd.isna(v):
        return None
    if isinstance(v, bool):
        return "boolean"
    if isinstance(v, int):
        return "integer"
    if isinstance(v, float):
        return "number"
    if isinstance(v, (dt.date, dt.datetime)):
        return "date"
    s = str(v).strip()
    if s.lower() in _BOOL_WORDS:
        return "boolean"
    if _INT_RE.match(s):
        return "integer"
    if _NUM_RE.match(s):
        return "number"
    if _DATE_RE.match(s):
        return "date"
    return "string"


def _merge_types(types: set[str]) -> str:
    if not types:
        return "empty"
    if len(types) == 1:
        return next(iter(types))
    if types == {"integer", "number"}:
        return "number"
    return "mixed"


def _json_safe(v: Any) -> Any:
    if isinstance(v, (dt.date, dt.datetime)):
        return v.isoformat()
    return v


def compute_field_stats(rows: list[dict[str, Any]]) -> SchemaSummary:
    if not rows:
        return {}
    df = pd.DataFrame.from_records(rows)
    summary: SchemaSummary = {}
    for col in df.columns:
        series = df[col].astype(object)
        types = series.map(value_type)
        present = types.notna()
        values = series[present]
        uniques = values.astype(str).drop_duplicates()
        summary[str(col)] = FieldStats(
            type=_merge_types(set(types[present])),
            occurrences=int(present.sum()),
            null_count=int((~present).sum()),
            unique_count=int(uniques.size),
            sample_values=[_json_safe(v) for v in values.loc[uniques.index[:SAMPLE_SIZE]]],
        )
    return summary


@dataclass
class SchemaChanges:
    new_fields: list[str] = field(default_factory=list)
    removed_fields: list[str] = field(default_factory=list)
    type_changes: list[dict] = field(default_factory=list)

    @property
    def is_breaking(self) -> bool:
        return bool(self.removed_fields or self.type_changes)

    @property
    def has_changes(self) -> bool:
        return bool(self.new_fields or self.is_breaking)

    def to_dict(self) -> dict:
        return {
            "new_fields": self.new_fields,
            "removed_fields": self.removed_fields,
            "type_changes": self.type_changes,
            "is_breaking": self.is_breaking,
        }


def _compatible(old: str, new: str) -> bool:
    if old == new or "empty" in (old, new):
        return True
    # integer columns that gained decimals widen without breaking consumers
    return old == "integer" and new == "number"


def compare_schemas(current: SchemaSummary, detected: SchemaSummary) -> SchemaChanges:
    changes = SchemaChanges()
    for name in detected:
        if name not in current:
            changes.new_fields.append(name)
    for name, old in current.items():
        if name not in detected:
            changes.removed_fields.append(name)
            continue
        new = detected[name]
        if not _compatible(old.type, new.type):
            changes.type_changes.append({"field": name, "from": old.type, "to": new.type})
    return changes


TITLE_PATTERNS = (r"^title$", r"^name$", r"^event_?name$", r"^event$", r"^summary$", r"^subject$", r"title", r"name")
TIMESTAMP_PATTERNS = (r"^date$", r"^timestamp$", r"^datetime$", r"^start_?date$", r"^event_?date$", r"^time$",
                      r"date", r"time")
DESCRIPTION_PATTERNS = (r"^description$", r"^details$", r"^body$", r"^notes?$", r"description")


def _first_match(names: list[str], patterns: tuple[str, ...]) -> str | None:
    for p in patterns:
        for n in names:
            if re.search(p, n.strip().lower()):
                return n
    return None


def suggest_field_mappings(summary: SchemaSummary, detection: dict | None = None) -> dict:
    names = list(summary.keys())
    date_fields = [n for n, s in summary.items() if s.type == "date"]
    detection = detection or {}
    return {
        "title": _first_match(names, TITLE_PATTERNS),
        "timestamp": _first_match(date_fields, TIMESTAMP_PATTERNS) or _first_match(names, TIMESTAMP_PATTERNS),
        "description": _first_match(names, DESCRIPTION_PATTERNS),
        "latitude": detection.get("latitude_column"),
        "longitude": detection.get("longitude_column"),
        "coordinates": detection.get("combined_column"),
        "address": detection.get("address_column"),
    }


def build_json_schema(summary: SchemaSummary) -> dict:
    json_types = {"integer": "integer", "number": "number", "boolean": "boolean", "date": "string",
                  "string": "string", "mixed": ["string", "number", "boolean"], "empty": "null"}
    properties = {}
    for name, stats in summary.items():
        prop = {"type": json_types.get(stats.type, "string")}
        if stats.type == "date":
            prop["format"] = "date-time"
        if stats.null_count:
            prop["nullable"] = True
        properties[name] = prop
    required = [n for n, s in summary.items() if s.null_count == 0 and s.occurrences > 0]
    return {"type": "object", "properties": properties, "required": required}
