from __future__ import annotations

import calendar
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

import pandas as pd

from audit_core.classify import ClassifiedRow, StatusCategory

QUICK_PRESETS = ("today", "week", "month", "offtrack")
DETAIL_COLUMNS = 10
_ALL_TOKENS = {"", "all", "all offices", "all personnel", "all locations"}


@dataclass(frozen=True)
class FilterCriteria:
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    locations: FrozenSet[str] = field(default_factory=frozenset)
    persons: FrozenSet[str] = field(default_factory=frozenset)
    status: Optional[StatusCategory] = None

    @property
    def has_date_bound(self) -> bool:
        return self.date_from is not None or self.date_to is not None

    @property
    def is_empty(self) -> bool:
        return not (self.has_date_bound or self.locations or self.persons or self.status)


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        ts = pd.to_datetime(str(value).strip(), errors="coerce")
    except Exception:
        return None
    if ts is None or pd.isna(ts):
        return None
    return ts.date()


def _as_str_set(values: Optional[Iterable[object]]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    out = set()
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s.lower() in _ALL_TOKENS:
            continue
        out.add(s)
    return frozenset(out)


def normalize_criteria(raw: Optional[dict]) -> FilterCriteria:
    raw = raw or {}
    return FilterCriteria(
        date_from=_as_date(raw.get("date_from")),
        date_to=_as_date(raw.get("date_to")),
        locations=_as_str_set(raw.get("locations")),
        persons=_as_str_set(raw.get("persons")),
        status=StatusCategory.from_label(raw.get("status")),
    )


def row_matches(row: ClassifiedRow, criteria: FilterCriteria) -> bool:
    if criteria.has_date_bound:
        if row.parsed_date is None:
            return False
        if criteria.date_from is not None and row.parsed_date < criteria.date_from:
            return False
        if criteria.date_to is not None and row.parsed_date > criteria.date_to:
            return False
    if criteria.locations and row.location not in criteria.locations:
        return False
    if criteria.persons and row.person not in criteria.persons:
        return False
    if criteria.status is not None and row.status != criteria.status:
        return False
    return True


def apply_filters(rows: Sequence[ClassifiedRow], criteria: Optional[FilterCriteria]) -> List[ClassifiedRow]:
    if criteria is None or criteria.is_empty:
        return list(rows)
    return [row for row in rows if row_matches(row, criteria)]


def _month_back(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def quick_filter(preset: str, today: Optional[date] = None) -> FilterCriteria:
    today = today or date.today()
    preset = (preset or "").strip().lower()
    if preset == "today":
        return FilterCriteria(date_from=today, date_to=today)
    if preset == "week":
        return FilterCriteria(date_from=today - timedelta(days=7), date_to=today)
    if preset == "month":
        return FilterCriteria(date_from=_month_back(today), date_to=today)
    if preset == "offtrack":
        return FilterCriteria(status=StatusCategory.OFF_TRACK)
    raise ValueError(f"Unknown quick filter preset: {preset!r} (expected one of {', '.join(QUICK_PRESETS)})")


def with_location(criteria: FilterCriteria, location: str) -> FilterCriteria:
    return replace(criteria, locations=frozenset([location]))


def filter_options(rows: Sequence[ClassifiedRow]) -> Dict[str, List[str]]:
    return {
        "locations": sorted({r.location for r in rows if r.location}),
        "persons": sorted({r.person for r in rows if r.person}),
        "statuses": [s.value for s in StatusCategory],
    }


def describe_criteria(criteria: FilterCriteria) -> List[str]:
    tags: List[str] = []
    if criteria.date_from is not None:
        tags.append(f"From: {criteria.date_from.isoformat()}")
    if criteria.date_to is not None:
        tags.append(f"To: {criteria.date_to.isoformat()}")
    if criteria.locations:
        tags.append(f"Office: {', '.join(sorted(criteria.locations))}")
    if criteria.persons:
        tags.append(f"Personnel: {', '.join(sorted(criteria.persons))}")
    if criteria.status is not None:
        tags.append(f"Status: {criteria.status.value}")
    return tags


def location_detail(rows: Sequence[ClassifiedRow], location: str, *, max_columns: int = DETAIL_COLUMNS) -> Dict[str, object]:
    name = (location or "").strip()
    matched = [r for r in rows if r.location == name]
    return {
        "location": name,
        "total_records": len(matched),
        "rows": [[c or "-" for c in r.cells[:max_columns]] for r in matched],
    }


def criteria_to_dict(criteria: FilterCriteria) -> Dict[str, object]:
    return {
        "date_from": criteria.date_from.isoformat() if criteria.date_from else None,
        "date_to": criteria.date_to.isoformat() if criteria.date_to else None,
        "locations": sorted(criteria.locations),
        "persons": sorted(criteria.persons),
        "status": criteria.status.value if criteria.status else None,
    }
