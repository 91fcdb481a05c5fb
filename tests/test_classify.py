from __future__ import annotations

from datetime import date

import pytest

from audit_core.classify import (
    ExclusionRules,
    StatusCategory,
    classify_rows,
    classify_status,
    classify_with_report,
    is_artifact_row,
    parse_flexible_date,
    parse_rating,
)
from audit_core.schema import detect_schema

from tests.conftest import HEADER, make_row


@pytest.mark.parametrize(
    "label, expected",
    [
        ("On Track", StatusCategory.ON_TRACK),
        ("on-track", StatusCategory.ON_TRACK),
        ("Off-Track", StatusCategory.OFF_TRACK),
        ("OFF TRACK", StatusCategory.OFF_TRACK),
        ("On/Off Track", StatusCategory.OFF_TRACK),
        ("", StatusCategory.OTHER),
        (None, StatusCategory.OTHER),
        ("Pending", StatusCategory.OTHER),
        ("Track", StatusCategory.OTHER),
    ],
)
def test_classify_status(label, expected):
    assert classify_status(label) is expected


def test_status_category_from_label():
    assert StatusCategory.from_label("On-Track") is StatusCategory.ON_TRACK
    assert StatusCategory.from_label("off_track") is StatusCategory.OFF_TRACK
    assert StatusCategory.from_label("OTHER") is StatusCategory.OTHER
    assert StatusCategory.from_label("") is None
    assert StatusCategory.from_label("maybe") is None


@pytest.mark.parametrize("location", ["OFFICE NAME", "office name", "  Office Name ", "", "   ", "WEEKLY ACCOUNTABILITY MEETING", "WAM Summary"])
def test_artifact_rows(location):
    assert is_artifact_row(location)


def test_regular_location_is_not_artifact():
    assert not is_artifact_row("Alpha")


def test_custom_exclusion_rules():
    rules = ExclusionRules(header_labels=("BRANCH",), title_markers=())
    assert is_artifact_row("branch", rules)
    assert not is_artifact_row("WAM", rules)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2024-01-15", date(2024, 1, 15)),
        ("2024-01-15T09:30:00", date(2024, 1, 15)),
        ("01/20/2024", date(2024, 1, 20)),
        ("3/5/24", date(2024, 3, 5)),
        ("13/40/2024", None),
        ("not a date", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_flexible_date(text, expected):
    assert parse_flexible_date(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("8", 8.0),
        ("7.5", 7.5),
        ("9/10", 9.0),
        (" 10 ", 10.0),
        ("1", 1.0),
        ("0", None),
        ("11", None),
        ("-3", None),
        ("n/a", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_rating(text, expected):
    assert parse_rating(text) == expected


def test_classify_rows_excludes_artifacts(sample_matrix):
    schema = detect_schema(sample_matrix)
    rows = classify_rows(sample_matrix, schema)
    assert [r.location for r in rows] == ["Alpha", "Alpha", "Beta", "Gamma", "Beta"]
    assert all(r.location not in ("", "OFFICE NAME") for r in rows)


def test_classified_row_fields(sample_matrix):
    schema = detect_schema(sample_matrix)
    first = classify_rows(sample_matrix, schema)[0]
    assert first.person == "Jane"
    assert first.parsed_date == date(2024, 1, 15)
    assert first.status is StatusCategory.ON_TRACK
    assert first.rating_value == 8.0
    assert first.cell(4) == "On Track"
    assert first.cell(99) == ""


def test_bad_cells_degrade_without_dropping_row(sample_matrix):
    schema = detect_schema(sample_matrix)
    rows, report = classify_with_report(sample_matrix, schema)
    gamma = next(r for r in rows if r.location == "Gamma")
    assert gamma.parsed_date is None
    assert gamma.rating_value is None
    assert gamma.status is StatusCategory.OTHER
    assert report.body_rows == 8
    assert report.excluded_rows == 3
    assert report.unparsed_dates == 1
    assert report.rejected_ratings == 1


def test_short_rows_are_padded_with_blanks():
    matrix = [list(HEADER), ["Alpha", "Jane"]]
    rows = classify_rows(matrix, detect_schema(matrix))
    assert len(rows) == 1
    assert rows[0].status is StatusCategory.OTHER
    assert rows[0].parsed_date is None


def test_location_is_trimmed():
    matrix = [list(HEADER), make_row("  Alpha  ", "Jane", "On Track")]
    rows = classify_rows(matrix, detect_schema(matrix))
    assert rows[0].location == "Alpha"
