from __future__ import annotations

import pytest

from audit_core.errors import SchemaError
from audit_core.schema import ColumnSchema, SchemaDefaults, detect_schema, find_column_index, pick_header_row

from tests.conftest import HEADER, make_row, title_row


def test_detect_schema_requires_two_rows():
    with pytest.raises(SchemaError):
        detect_schema([])
    with pytest.raises(SchemaError):
        detect_schema([list(HEADER)])


def test_header_on_second_row_when_first_is_mostly_blank(sample_matrix):
    schema = detect_schema(sample_matrix)
    assert schema.header_row_index == 1
    assert schema.data_start_row_index == 2
    assert schema.headers == HEADER


def test_header_on_first_row_when_it_is_populated():
    matrix = [list(HEADER), make_row("Alpha", "Jane", "On Track")]
    schema = detect_schema(matrix)
    assert schema.header_row_index == 0
    assert schema.data_start_row_index == 1


def test_exactly_half_blank_first_row_stays_header():
    first = ["A", "B", "", ""]
    assert pick_header_row([first, ["x", "y", "z", "w"]]) == 0


def test_blank_first_row_with_empty_second_row_stays_on_first():
    assert pick_header_row([["", "", "x"], []]) == 0


def test_keyword_columns_are_detected(sample_matrix):
    schema = detect_schema(sample_matrix)
    assert schema.location == 0
    assert schema.person == 1
    assert schema.date == 9
    assert schema.status == 4
    assert schema.rating == 7


def test_keywords_found_in_other_positions():
    header = ["OFFICE", "WEEK", "Employee", "x", "ROCK REVIEW", "y", "Date of visit"]
    schema = detect_schema([header, make_row("Alpha")])
    assert schema.person == 2
    assert schema.date == 6
    assert schema.header_for(2) == "Employee"


def test_fallback_indices_without_keywords():
    header = ["OFFICE", "WHO", "WEEK", "ROCKS", "ROCK REVIEW", "ISSUES", "TODOS", "CONCLUDE", "NOTES", "WHEN"]
    matrix = [
        header,
        make_row("Alpha", "Jane", "On Track"),
        make_row("Beta", "Bob", "Off Track"),
        make_row("Gamma", "Cara", ""),
    ]
    schema = detect_schema(matrix)
    assert (schema.location, schema.person, schema.date, schema.status) == (0, 1, 9, 4)


def test_office_name_header_matches_person_keyword():
    header = ["OFFICE NAME", "WHO", "WEEK", "ROCKS", "ROCK REVIEW", "ISSUES", "TODOS", "CONCLUDE", "NOTES", "WHEN"]
    schema = detect_schema([header, make_row("Alpha", "Jane", "On Track")])
    assert schema.location == 0
    assert schema.person == 0
    assert schema.date == 9


def test_keyword_in_fixed_columns_is_honoured():
    header = ["OFFICE", "WHO", "", "", "Audit status", "", "", "Rating"]
    schema = detect_schema([header, ["Alpha", "Jane", "", "", "On Track", "", "", "8"]])
    assert schema.date == 4
    assert schema.status == 4


def test_defaults_can_be_overridden():
    defaults = SchemaDefaults(person_fallback=3, date_fallback=2, status_index=5, rating_index=6)
    schema = detect_schema([["A", "B", "C"], ["x", "y", "z"]], defaults)
    assert schema == ColumnSchema(location=0, person=3, date=2, status=5, rating=6, header_row_index=0, headers=["A", "B", "C"])


def test_title_row_with_single_label_picks_second_row():
    matrix = [title_row(), list(HEADER), make_row("Alpha")]
    assert detect_schema(matrix).header_row_index == 1


def test_find_column_index_is_case_insensitive_and_returns_first_match():
    headers = ["Office Name", "Staff NAME", "audit"]
    assert find_column_index(headers, ["name"]) == 0
    assert find_column_index(headers, ["staff", "audit"]) == 1
    assert find_column_index(headers, ["missing"]) == -1
