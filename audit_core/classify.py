from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from audit_core.schema import ColumnSchema, RawMatrix, cell_text

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")


class StatusCategory(str, Enum):
    ON_TRACK = "On-Track"
    OFF_TRACK = "Off-Track"
    OTHER = "Other"

    @classmethod
    def from_label(cls, value: object) -> Optional["StatusCategory"]:
        """Match a category by label or member name, ignoring case and separators."""
        if value is None:
            return None
        if isinstance(value, StatusCategory):
            return value
        key = re.sub(r"[\s_-]+", "", str(value)).lower()
        if not key:
            return None
        for member in cls:
            if key in (re.sub(r"[\s_-]+", "", member.value).lower(), member.name.replace("_", "").lower()):
                return member
        return None


@dataclass(frozen=True)
class ExclusionRules:
    """Location-cell values that mark header or title artifacts inside the data body."""

    header_labels: Tuple[str, ...] = ("OFFICE NAME",)
    title_markers: Tuple[str, ...] = ("WEEKLY ACCOUNTABILITY", "WAM")


DEFAULT_EXCLUSIONS = ExclusionRules()


@dataclass(frozen=True)
class ClassifiedRow:
    cells: Tuple[str, ...]
    location: str
    person: str
    parsed_date: Optional[date]
    status: StatusCategory
    rating_value: Optional[float]

    def cell(self, index: int) -> str:
        return cell_text(self.cells, index)


@dataclass(frozen=True)
class ClassificationReport:
    body_rows: int = 0
    excluded_rows: int = 0
    unparsed_dates: int = 0
    rejected_ratings: int = 0


def classify_status(value: Optional[str]) -> StatusCategory:
    text = (value or "").strip().lower()
    if "off" in text and "track" in text:
        return StatusCategory.OFF_TRACK
    if "on" in text and "track" in text:
        return StatusCategory.ON_TRACK
    return StatusCategory.OTHER


def _parse_slash_date(text: str) -> Optional[date]:
    """Parse `M/D/Y`. Two-digit years land in 2000-2099 (`3/5/24` is 2024-03-05), not the 1900s."""
    parts = text.split("/")
    if len(parts) != 3:
        return None
    try:
        month, day, year = (int(p.strip()) for p in parts)
    except ValueError:
        return None
    if 0 <= year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_flexible_date(value: Optional[str]) -> Optional[date]:
    """Best-effort date parse: ISO 8601 first, then month/day/year with slashes."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    ts = pd.to_datetime(text, format="ISO8601", errors="coerce")
    if ts is not None and not pd.isna(ts):
        return ts.date()
    return _parse_slash_date(text)


def parse_rating(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return None
    try:
        rating = float(match.group(0))
    except ValueError:
        return None
    if not math.isfinite(rating) or rating < 1 or rating > 10:
        return None
    return rating


def is_artifact_row(location: str, rules: ExclusionRules = DEFAULT_EXCLUSIONS) -> bool:
    key = (location or "").strip().upper()
    if not key:
        return True
    if key in rules.header_labels:
        return True
    return any(marker in key for marker in rules.title_markers)


def classify_row(row: Sequence[Optional[str]], schema: ColumnSchema) -> ClassifiedRow:
    return ClassifiedRow(
        cells=tuple(cell_text(row, i) for i in range(len(row))),
        location=cell_text(row, schema.location).strip(),
        person=cell_text(row, schema.person).strip(),
        parsed_date=parse_flexible_date(cell_text(row, schema.date)),
        status=classify_status(cell_text(row, schema.status)),
        rating_value=parse_rating(cell_text(row, schema.rating)),
    )


def classify_with_report(
    matrix: RawMatrix,
    schema: ColumnSchema,
    rules: ExclusionRules = DEFAULT_EXCLUSIONS,
) -> Tuple[List[ClassifiedRow], ClassificationReport]:
    body = list(matrix[schema.data_start_row_index :])
    rows: List[ClassifiedRow] = []
    excluded = unparsed_dates = rejected_ratings = 0
    for raw in body:
        raw = raw or []
        if is_artifact_row(cell_text(raw, schema.location), rules):
            excluded += 1
            continue
        row = classify_row(raw, schema)
        if row.parsed_date is None and cell_text(raw, schema.date).strip():
            unparsed_dates += 1
        if row.rating_value is None and cell_text(raw, schema.rating).strip():
            rejected_ratings += 1
        rows.append(row)

    report = ClassificationReport(
        body_rows=len(body),
        excluded_rows=excluded,
        unparsed_dates=unparsed_dates,
        rejected_ratings=rejected_ratings,
    )
    logger.debug("Classified %d of %d body rows (%d artifacts excluded)", len(rows), len(body), excluded)
    return rows, report


def classify_rows(
    matrix: RawMatrix,
    schema: ColumnSchema,
    rules: ExclusionRules = DEFAULT_EXCLUSIONS,
) -> List[ClassifiedRow]:
    rows, _ = classify_with_report(matrix, schema, rules)
    return rows
