from timetiles.services.etl.field_stats import (
    FieldStats,
    build_json_schema,
    compare_schemas,
    compute_field_stats,
    suggest_field_mappings,
    summary_from_dict,
    summary_to_dict,
)
from timetiles.services.etl.geo import detect_geo_columns, parse_coordinate_pair, row_coordinates


def test_field_stats():
    rows = [
        {"title": "A", "count": "1", "price": "1.5", "when": "2024-01-01", "flag": "true", "note": ""},
        {"title": "B", "count": "2", "price": "2", "when": "2024-01-02", "flag": "false", "note": ""},
        {"title": "A", "count": "x", "price": "3", "when": "2024-01-03", "flag": "true", "note": None},
    ]
    s = compute_field_stats(rows)
    assert s["title"].type == "string"
    assert s["title"].unique_count == 2
    assert s["title"].sample_values == ["A", "B"]
    assert s["count"].type == "mixed"
    assert s["price"].type == "number"
    assert s["when"].type == "date"
    assert s["flag"].type == "boolean"
    assert s["note"].type == "empty"
    assert s["note"].null_count == 3
    assert summary_from_dict(summary_to_dict(s))["price"] == s["price"]


def test_compare_schemas():
    current = {"a": FieldStats("integer"), "b": FieldStats("string"), "c": FieldStats("date")}
    detected = {"a": FieldStats("number"), "b": FieldStats("integer"), "d": FieldStats("string")}
    changes = compare_schemas(current, detected)
    assert changes.new_fields == ["d"]
    assert changes.removed_fields == ["c"]
    assert changes.type_changes == [{"field": "b", "from": "string", "to": "integer"}]
    assert changes.is_breaking


def test_additions_only_are_not_breaking():
    changes = compare_schemas({"a": FieldStats("string")}, {"a": FieldStats("empty"), "b": FieldStats("date")})
    assert changes.has_changes
    assert not changes.is_breaking
    assert not compare_schemas({"a": FieldStats("string")}, {"a": FieldStats("string")}).has_changes


def test_field_mappings_and_json_schema():
    summary = {
        "Event Name": FieldStats("string", occurrences=2),
        "start_date": FieldStats("date", occurrences=1, null_count=1),
        "details": FieldStats("string", occurrences=2),
    }
    mappings = suggest_field_mappings(summary, {"address_column": "venue"})
    assert mappings["title"] == "Event Name"
    assert mappings["timestamp"] == "start_date"
    assert mappings["description"] == "details"
    assert mappings["address"] == "venue"

    schema = build_json_schema(summary)
    assert schema["properties"]["start_date"] == {"type": "string", "format": "date-time", "nullable": True}
    assert schema["required"] == ["Event Name", "details"]


def test_detect_separate_columns():
    rows = [{"name": "a", "Latitude": "52.5", "Longitude": "13.4"}, {"name": "b", "Latitude": "48.8", "Longitude": "2.3"}]
    d = detect_geo_columns(rows)
    assert d["type"] == "separate"
    assert (d["latitude_column"], d["longitude_column"]) == ("Latitude", "Longitude")
    assert row_coordinates(rows[0], d) == (52.5, 13.4)


def test_out_of_range_values_are_not_coordinates():
    rows = [{"lat": "120", "lon": "500"}, {"lat": "95", "lon": "13"}]
    assert detect_geo_columns(rows)["type"] == "none"


def test_detect_combined_and_address():
    rows = [{"coordinates": "52.5, 13.4"}, {"coordinates": "(48.8;2.3)"}]
    d = detect_geo_columns(rows)
    assert d["type"] == "combined"
    assert row_coordinates(rows[1], d) == (48.8, 2.3)

    assert detect_geo_columns([{"address": "Main St 1"}])["type"] == "address"
    assert detect_geo_columns([])["type"] == "none"


def test_coordinate_pair_parsing():
    assert parse_coordinate_pair("40.7128 -74.0060") == (40.7128, -74.006)
    assert parse_coordinate_pair("91,0") is None
    assert parse_coordinate_pair("north") is None
