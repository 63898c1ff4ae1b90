import re
from typing import Any

from timetiles.services.etl.parsing import get_row_value

LAT_PATTERNS = (r"^lat$", r"^latitude$", r"^lat_?deg", r"^y$", r"^geo_?lat", r"latitude")
LON_PATTERNS = (r"^lon$", r"^lng$", r"^long$", r"^longitude$", r"^x$", r"^geo_?lon", r"^geo_?lng", r"longitude")
COMBINED_PATTERNS = (r"^coordinates?$", r"^coords?$", r"^lat_?lon$", r"^lat_?lng$", r"^latlng$", r"^location$", r"^geo$")
ADDRESS_PATTERNS = (r"^address$", r"^full_?address$", r"^street", r"^location$", r"^place$", r"^venue$", r"^city$")

SAMPLE_ROWS = 100
MIN_VALID_SHARE = 0.7

_PAIR_RE = re.compile(r"^\s*\(?\s*([+-]?\d+(?:\.\d+)?)\s*[,; ]\s*([+-]?\d+(?:\.\d+)?)\s*\)?\s*$")


def _match(header: str, patterns: tuple[str, ...]) -> bool:
    h = header.strip().lower()
    return any(re.search(p, h) for p in patterns)


def parse_coordinate(v: Any) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    s = str(v).strip()
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def parse_coordinate_pair(v: Any) -> tuple[float, float] | None:
    if v is None:
        return None
    m = _PAIR_RE.match(str(v))
    if not m:
        return None
    lat, lon = float(m.group(1)), float(m.group(2))
    if not is_valid_lat_lon(lat, lon):
        return None
    return lat, lon


def is_valid_lat_lon(lat: float | None, lon: float | None) -> bool:
    if lat is None or lon is None:
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def _share_valid(rows: list[dict], check) -> float:
    sample = rows[:SAMPLE_ROWS]
    seen = valid = 0
    for row in sample:
        ok = check(row)
        if ok is None:
            continue
        seen += 1
        valid += 1 if ok else 0
    return valid / seen if seen else 0.0


def detect_geo_columns(rows: list[dict[str, Any]]) -> dict:
    """Find coordinate/address columns by header name, then confirm against sample values."""
    headers = list(rows[0].keys()) if rows else []
    result = {"type": "none", "latitude_column": None, "longitude_column": None,
              "combined_column": None, "address_column": None, "confidence": 0.0}
    if not headers:
        return result

    lat_col = next((h for h in headers if _match(h, LAT_PATTERNS)), None)
    lon_col = next((h for h in headers if h != lat_col and _match(h, LON_PATTERNS)), None)
    if lat_col and lon_col:
        def check(row):
            lat = parse_coordinate(get_row_value(row, lat_col))
            lon = parse_coordinate(get_row_value(row, lon_col))
            if lat is None and lon is None:
                return None
            return is_valid_lat_lon(lat, lon)

        share = _share_valid(rows, check)
        if share >= MIN_VALID_SHARE:
            result.update(type="separate", latitude_column=lat_col, longitude_column=lon_col,
                          confidence=round(share, 2))
            return result

    for h in headers:
        if not _match(h, COMBINED_PATTERNS):
            continue

        def check(row, h=h):
            v = get_row_value(row, h)
            if v is None or str(v).strip() == "":
                return None
            return parse_coordinate_pair(v) is not None

        share = _share_valid(rows, check)
        if share >= MIN_VALID_SHARE:
            result.update(type="combined", combined_column=h, confidence=round(share, 2))
            return result

    address_col = next((h for h in headers if _match(h, ADDRESS_PATTERNS)), None)
    if address_col:
        result.update(type="address", address_column=address_col, confidence=0.5)
    return result


def row_coordinates(row: dict, detection: dict) -> tuple[float, float] | None:
    kind = detection.get("type")
    if kind == "separate":
        lat = parse_coordinate(get_row_value(row, detection.get("latitude_column")))
        lon = parse_coordinate(get_row_value(row, detection.get("longitude_column")))
        return (lat, lon) if is_valid_lat_lon(lat, lon) else None
    if kind == "combined":
        return parse_coordinate_pair(get_row_value(row, detection.get("combined_column")))
    return None
