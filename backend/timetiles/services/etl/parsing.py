import csv
import io
from pathlib import PurePosixPath
from typing import Any

from openpyxl import load_workbook

from timetiles.core.errors import ParseError
from timetiles.core.logging import logger

# column headers come from uploaded files; never let them shadow these
RESERVED_KEYS = frozenset({
    "__proto__",
    "constructor",
    "prototype",
    "toString",
    "toLocaleString",
    "valueOf",
    "hasOwnProperty",
    "isPrototypeOf",
    "propertyIsEnumerable",
    "__defineGetter__",
    "__defineSetter__",
    "__lookupGetter__",
    "__lookupSetter__",
})

CSV_TYPES = ("csv",)
SPREADSHEET_TYPES = ("spreadsheet", "xlsx", "xls")

MIME_FILE_TYPES = {
    "text/csv": "csv",
    "application/csv": "csv",
    "text/plain": "csv",
    "application/vnd.ms-excel": "spreadsheet",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "spreadsheet",
    "application/vnd.oasis.opendocument.spreadsheet": "spreadsheet",
}


def is_safe_key(key: Any) -> bool:
    if not isinstance(key, str) or not key:
        return False
    if key in RESERVED_KEYS:
        return False
    return not (key.startswith("__") and key.endswith("__"))


def set_row_value(row: dict, key: Any, value: Any) -> bool:
    """Write ``row[key] = value`` unless the key is empty or reserved. Returns whether it was written."""
    if not is_safe_key(key):
        return False
    row[key] = value
    return True


def get_row_value(row: dict, key: Any, default: Any = None) -> Any:
    if not is_safe_key(key):
        return default
    return row.get(key, default)


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"CSV is not valid UTF-8 text (byte offset {e.start})") from e


def parse_csv(data: bytes) -> list[dict[str, Any]]:
    text = _decode(data)
    try:
        reader = csv.reader(io.StringIO(text, newline=""))
        lines = [line for line in reader]
    except csv.Error as e:
        raise ParseError(f"Malformed CSV: {e}") from e

    lines = [line for line in lines if any(cell.strip() for cell in line)]
    if not lines:
        return []

    headers = [h.strip() for h in lines[0]]
    rows = []
    for line in lines[1:]:
        row: dict[str, Any] = {}
        for i, h in enumerate(headers):
            set_row_value(row, h, line[i] if i < len(line) else "")
        rows.append(row)
    return rows


def parse_spreadsheet(data: bytes) -> list[dict[str, Any]]:
    try:
        wb = load_workbook(io.BytesIO(data), data_only=True, read_only=True)
    except Exception as e:
        raise ParseError(f"Unreadable spreadsheet: {e}") from e

    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        if ws is None:
            raise ParseError("Spreadsheet has no sheets")

        it = ws.iter_rows(values_only=True)
        header_row = next(it, None)
        if header_row is None:
            return []

        headers = []
        for i, v in enumerate(header_row):
            name = str(v).strip() if v is not None else ""
            headers.append(name or f"column_{i}")

        rows = []
        for values in it:
            if all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
                continue
            row: dict[str, Any] = {}
            for i, h in enumerate(headers):
                v = values[i] if i < len(values) else None
                set_row_value(row, h, v)
            rows.append(row)
        return rows
    finally:
        wb.close()


def parse_file_by_type(data: bytes, file_type: str) -> list[dict[str, Any]]:
    ft = (file_type or "").lower()
    if ft in CSV_TYPES:
        rows = parse_csv(data)
    elif ft in SPREADSHEET_TYPES:
        rows = parse_spreadsheet(data)
    else:
        raise ParseError(f"Unsupported file type: {file_type}")
    logger.info("file_parsed", file_type=ft, rows=len(rows))
    return rows


def file_type_from_mime(mime_type: str | None, filename: str | None = None) -> str:
    mt = (mime_type or "").split(";")[0].strip().lower()
    if mt in MIME_FILE_TYPES:
        return MIME_FILE_TYPES[mt]
    suffix = PurePosixPath(filename or "").suffix.lower()
    if suffix == ".csv":
        return "csv"
    if suffix in (".xlsx", ".xls", ".ods"):
        return "spreadsheet"
    raise ParseError(f"Unsupported file type: {mime_type or suffix or 'unknown'}")
