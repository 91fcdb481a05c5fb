from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from audit_core.errors import SchemaError

logger = logging.getLogger(__name__)

RawMatrix = Sequence[Sequence[Optional[str]]]


@dataclass(frozen=True)
class SchemaDefaults:
    """Column layout of the weekly audit sheet.

    `location`, `status` and `rating` are fixed by the sheet's business layout
    (columns A, E and H). `person` and `date` are looked up by header keyword
    and fall back to columns B and J. The keyword scan covers every header
    cell, so an "OFFICE NAME" label in column A also matches `name`.
    """

    location_index: int = 0
    status_index: int = 4
    rating_index: int = 7
    person_fallback: int = 1
    date_fallback: int = 9
    person_keywords: Tuple[str, ...] = ("name", "personnel", "employee")
    date_keywords: Tuple[str, ...] = ("date", "audit")


DEFAULT_SCHEMA = SchemaDefaults()


@dataclass(frozen=True)
class ColumnSchema:
    location: int
    person: int
    date: int
    status: int
    rating: int
    header_row_index: int
    headers: List[str] = field(default_factory=list)

    @property
    def data_start_row_index(self) -> int:
        return self.header_row_index + 1

    def header_for(self, index: int) -> str:
        if 0 <= index < len(self.headers):
            return self.headers[index]
        return ""


def cell_text(row: Sequence[Optional[str]], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    value = row[index]
    if value is None:
        return ""
    return str(value)


def is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def find_column_index(headers: Sequence[str], keywords: Sequence[str]) -> int:
    lowered = [k.lower() for k in keywords]
    for idx, header in enumerate(headers):
        h = (header or "").lower()
        if h and any(k in h for k in lowered):
            return idx
    return -1


def pick_header_row(matrix: RawMatrix) -> int:
    first, second = matrix[0], matrix[1]
    empty_count = sum(1 for cell in first if is_blank(cell))
    if empty_count > len(first) / 2 and len(second) > 0:
        return 1
    return 0


def detect_schema(matrix: RawMatrix, defaults: SchemaDefaults = DEFAULT_SCHEMA) -> ColumnSchema:
    if matrix is None or len(matrix) < 2:
        raise SchemaError(f"Need at least 2 rows to detect the header layout, got {0 if matrix is None else len(matrix)}")

    header_row_index = pick_header_row(matrix)
    headers = [cell_text(matrix[header_row_index], i).strip() for i in range(len(matrix[header_row_index]))]

    person = find_column_index(headers, defaults.person_keywords)
    if person == -1:
        person = defaults.person_fallback
    date = find_column_index(headers, defaults.date_keywords)
    if date == -1:
        date = defaults.date_fallback

    schema = ColumnSchema(
        location=defaults.location_index,
        person=person,
        date=date,
        status=defaults.status_index,
        rating=defaults.rating_index,
        header_row_index=header_row_index,
        headers=headers,
    )
    logger.debug(
        "Detected layout: header row %d, person=%d (%r), date=%d (%r), status=%d, rating=%d",
        header_row_index,
        schema.person,
        schema.header_for(schema.person),
        schema.date,
        schema.header_for(schema.date),
        schema.status,
        schema.rating,
    )
    return schema
