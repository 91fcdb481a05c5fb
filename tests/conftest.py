from __future__ import annotations

from typing import List

import pytest

from audit_core.pipeline import PipelineContext, build_context

WIDTH = 10
HEADER = [
    "OFFICE",
    "PERSONNEL NAME",
    "WEEK",
    "ROCKS",
    "ROCK REVIEW",
    "ISSUES",
    "TODOS",
    "CONCLUDE",
    "NOTES",
    "AUDIT DATE",
]


def make_row(office: str, person: str = "", status: str = "", rating: str = "", audit_date: str = "", notes: str = "") -> List[str]:
    row = [""] * WIDTH
    row[0] = office
    row[1] = person
    row[4] = status
    row[7] = rating
    row[8] = notes
    row[9] = audit_date
    return row


def repeated_header_row() -> List[str]:
    """Header block the sheet repeats inside the data body."""
    return ["OFFICE NAME"] + HEADER[1:]


def title_row(text: str = "WEEKLY ACCOUNTABILITY MEETING AUDIT") -> List[str]:
    return [text] + [""] * (WIDTH - 1)


@pytest.fixture()
def sample_matrix() -> List[List[str]]:
    return [
        title_row(),
        list(HEADER),
        make_row("Alpha", "Jane", "On Track", "8", "2024-01-15"),
        make_row("Alpha", "Jane", "Off Track", "6", "01/20/2024"),
        make_row("Beta", "Bob", "On Track", "9", "2024-02-03"),
        repeated_header_row(),
        make_row("Gamma", "Cara", "Pending", "11", "not a date"),
        make_row("", "Nobody", "On Track", "5", "2024-02-10"),
        make_row("Beta", "Bob", "off-track", "7", "2024-02-28"),
        title_row("WAM Weekly Summary"),
    ]


@pytest.fixture()
def sample_context(sample_matrix) -> PipelineContext:
    return build_context(sample_matrix)
