import datetime as dt

from timetiles.services.etl.parsing import parse_file_by_type
from timetiles.services.etl.validators import (
    validate_rows,
    parse_date,
    safe_string_value,
    has_valid_property,
    parse_tags_from_row,
)


def test_empty_input():
    result = validate_rows([])
    assert not result.is_valid
    assert "No data rows found in file" in result.errors


def test_all_rows_empty():
    result = validate_rows([{"name": "", "age": None}, {"name": None, "age": ""}])
    assert not result.is_valid
    assert "All data rows appear to be empty" in result.errors


def test_one_non_empty_value_is_enough():
    rows = [{"name": "", "city": ""}] + [{"name": "Alice", "city": "Paris"}] * 10
    result = validate_rows(rows)
    assert result.is_valid
    assert "All data rows appear to be empty" not in result.errors


def test_no_headers():
    result = validate_rows([{}])
    assert not result.is_valid
    assert "No column headers detected" in result.errors


def test_inconsistent_columns_over_threshold():
    rows = [{"name": "Alice", "age": 30, "city": "NYC", "country": "USA"}, {"name": "Bob", "age": 25}]
    rows += [{f"other{i}": "x"} for i in range(10)]
    result = validate_rows(rows)
    assert not result.is_valid
    assert any("inconsistent column structure" in e for e in result.errors)


def test_minor_inconsistency_is_a_warning():
    rows = [{"name": f"n{i}", "age": i, "city": "X"} for i in range(10)] + [{"different": "structure"}]
    result = validate_rows(rows)
    assert result.is_valid
    assert result.errors == []
    assert result.inconsistent_rows == 1
    assert result.warnings


def test_half_the_columns_is_consistent():
    rows = [{"name": "A", "age": 1, "city": "X", "country": "Y"}, {"name": "C", "age": 35}]
    result = validate_rows(rows)
    assert result.is_valid
    assert result.inconsistent_rows == 0


def test_ragged_csv_rows_are_inconsistent():
    # short lines come back padded with blank cells for the missing columns
    rows = parse_file_by_type(b"a,b,c,d\n" + b"1\n" * 10, "csv")
    assert rows[0] == {"a": "1", "b": "", "c": "", "d": ""}
    result = validate_rows(rows)
    assert not result.is_valid
    assert result.inconsistent_rows == 10
    assert any("inconsistent column structure" in e for e in result.errors)


def test_ragged_row_minority_is_a_warning():
    data = b"a,b,c,d\n" + b"1,2,3,4\n" * 19 + b"1\n"
    result = validate_rows(parse_file_by_type(data, "csv"))
    assert result.is_valid
    assert result.inconsistent_rows == 1
    assert result.warnings


def test_parse_date_formats():
    assert parse_date(dt.datetime(2024, 3, 15, 10, 30, tzinfo=dt.timezone.utc)) == "2024-03-15T10:30:00.000Z"
    assert parse_date(1710498600000) == "2024-03-15T10:30:00.000Z"
    assert parse_date("  2024-03-15T10:30:00.000Z ") == "2024-03-15T10:30:00.000Z"
    assert parse_date("2024-03-15T10:30:00-05:00") == "2024-03-15T15:30:00.000Z"
    assert "2024-03-15" in parse_date("2024-03-15")
    assert "2024" in parse_date("03/15/2024")
    assert "2024" in parse_date("March 15, 2024")


def test_parse_date_falls_back_to_now():
    before = dt.datetime.now(dt.timezone.utc) - dt.timedelta(seconds=1)
    for value in ("", "   ", "not a date", None):
        parsed = dt.datetime.fromisoformat(parse_date(value).replace("Z", "+00:00"))
        assert parsed >= before


def test_safe_string_value():
    row = {"name": " Alice ", "age": 30, "active": True, "empty": "", "blank": "  ", "tags": ["a", "b"]}
    assert safe_string_value(row, "name") == "Alice"
    assert safe_string_value(row, "age") == "30"
    assert safe_string_value(row, "active") == "true"
    assert safe_string_value(row, "empty") is None
    assert safe_string_value(row, "blank") == ""
    assert safe_string_value(row, "tags") == "a,b"
    assert safe_string_value(row, "missing") is None
    assert safe_string_value(row, "__proto__") is None


def test_has_valid_property():
    row = {"zero": 0, "off": False, "none": None, "empty": "", "space": " "}
    assert has_valid_property(row, "zero")
    assert has_valid_property(row, "off")
    assert has_valid_property(row, "space")
    assert not has_valid_property(row, "none")
    assert not has_valid_property(row, "empty")
    assert not has_valid_property(row, "missing")
    assert not has_valid_property(row, "constructor")


def test_parse_tags():
    assert parse_tags_from_row({"tags": "tag1, tag2;tag3|tag1"}) == ["tag1", "tag2", "tag3"]
    assert parse_tags_from_row({"tags": "a", "categories": "b"}) == ["a"]
    assert parse_tags_from_row({"labels": "l1,l2"}) == ["l1", "l2"]
    assert parse_tags_from_row({"keywords": ",,k1,  ,k2"}) == ["k1", "k2"]
    assert parse_tags_from_row({"tags": "   "}) == []
    assert parse_tags_from_row({"title": "x"}) == []
    many = ",".join(f"tag{i}" for i in range(1, 16))
    assert parse_tags_from_row({"tags": many}) == [f"tag{i}" for i in range(1, 11)]
