from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import pandas as pd

from audit_core.classify import ClassifiedRow, StatusCategory
from audit_core.data import round_half_up

TOP_LOCATIONS = 10
FRAME_COLUMNS = ["location", "person", "parsed_date", "status", "rating_value"]
MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


@dataclass(frozen=True)
class LocationBreakdown:
    location: str
    on_track: int
    off_track: int
    other: int
    total: int


@dataclass(frozen=True)
class TrendPoint:
    month_key: str
    on_track_percent: float
    total_records: int


@dataclass(frozen=True)
class StatusShare:
    status: StatusCategory
    count: int
    percent: float


@dataclass(frozen=True)
class LocationCount:
    location: str
    count: int
    percent: float


@dataclass(frozen=True)
class AggregateSnapshot:
    total_records: int = 0
    total_locations: int = 0
    on_track_count: int = 0
    off_track_count: int = 0
    other_count: int = 0
    on_track_rate: float = 0.0
    average_rating: float = 0.0
    rating_count: int = 0
    per_location_breakdown: List[LocationBreakdown] = field(default_factory=list)
    monthly_trend: List[TrendPoint] = field(default_factory=list)
    status_breakdown: List[StatusShare] = field(default_factory=list)
    location_distribution: List[LocationCount] = field(default_factory=list)


def rows_to_frame(rows: Sequence[ClassifiedRow]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    return pd.DataFrame(
        {
            "location": [r.location for r in rows],
            "person": [r.person for r in rows],
            "parsed_date": [r.parsed_date for r in rows],
            "status": [r.status.value for r in rows],
            "rating_value": pd.to_numeric(pd.Series([r.rating_value for r in rows], dtype="object"), errors="coerce"),
        }
    )


def percent(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round_half_up(part / whole * 100, 1)


def location_breakdown(df: pd.DataFrame, top_n: int = TOP_LOCATIONS) -> List[LocationBreakdown]:
    if df.empty:
        return []
    statuses = [s.value for s in StatusCategory]
    table = pd.crosstab(df["location"], df["status"]).reindex(columns=statuses, fill_value=0)
    # crosstab sorts its index; restore first-seen order so the stable sort breaks ties by it
    table = table.reindex(df["location"].drop_duplicates().tolist())
    table["total"] = table[statuses].sum(axis=1)
    table = table.sort_values("total", ascending=False, kind="stable").head(max(0, int(top_n)))
    return [
        LocationBreakdown(
            location=str(loc),
            on_track=int(r[StatusCategory.ON_TRACK.value]),
            off_track=int(r[StatusCategory.OFF_TRACK.value]),
            other=int(r[StatusCategory.OTHER.value]),
            total=int(r["total"]),
        )
        for loc, r in table.iterrows()
    ]


def location_distribution(df: pd.DataFrame) -> List[LocationCount]:
    if df.empty:
        return []
    counts = df.groupby("location", sort=False).size().sort_values(ascending=False, kind="stable")
    total = int(counts.sum())
    return [LocationCount(location=str(loc), count=int(n), percent=percent(int(n), total)) for loc, n in counts.items()]


def monthly_trend(df: pd.DataFrame) -> List[TrendPoint]:
    dated = df.dropna(subset=["parsed_date"])
    if dated.empty:
        return []
    dated = dated.assign(
        month_key=dated["parsed_date"].map(lambda d: f"{d.year:04d}-{d.month:02d}"),
        is_on_track=dated["status"].eq(StatusCategory.ON_TRACK.value),
    )
    buckets = (
        dated.groupby("month_key")
        .agg(total=("status", "size"), on_track=("is_on_track", "sum"))
        .reset_index()
        .sort_values("month_key")
    )
    return [
        TrendPoint(
            month_key=str(r["month_key"]),
            on_track_percent=percent(int(r["on_track"]), int(r["total"])),
            total_records=int(r["total"]),
        )
        for _, r in buckets.iterrows()
    ]


def compute_snapshot(rows: Sequence[ClassifiedRow], *, top_n: int = TOP_LOCATIONS) -> AggregateSnapshot:
    df = rows_to_frame(rows)
    total = int(len(df))
    counts = df["status"].value_counts()
    on_track = int(counts.get(StatusCategory.ON_TRACK.value, 0))
    off_track = int(counts.get(StatusCategory.OFF_TRACK.value, 0))
    other = int(counts.get(StatusCategory.OTHER.value, 0))

    ratings = df["rating_value"].dropna()
    average_rating = round_half_up(float(ratings.mean()), 1) if not ratings.empty else 0.0

    return AggregateSnapshot(
        total_records=total,
        total_locations=int(df.loc[df["location"].astype(str).str.strip().ne(""), "location"].nunique()),
        on_track_count=on_track,
        off_track_count=off_track,
        other_count=other,
        on_track_rate=percent(on_track, total),
        average_rating=average_rating,
        rating_count=int(len(ratings)),
        per_location_breakdown=location_breakdown(df, top_n),
        monthly_trend=monthly_trend(df),
        status_breakdown=[
            StatusShare(status=StatusCategory.ON_TRACK, count=on_track, percent=percent(on_track, total)),
            StatusShare(status=StatusCategory.OFF_TRACK, count=off_track, percent=percent(off_track, total)),
            StatusShare(status=StatusCategory.OTHER, count=other, percent=percent(other, total)),
        ],
        location_distribution=location_distribution(df),
    )


def rate_band(value: float) -> str:
    if value >= 80:
        return "success"
    if value >= 60:
        return "warning"
    return "danger"


def success_label(value: float) -> str:
    if value >= 75:
        return "Excellent"
    if value >= 50:
        return "Good"
    return "Needs Work"


def format_month_label(month_key: str) -> str:
    try:
        year, month = month_key.split("-")
        return f"{MONTH_NAMES[int(month) - 1]} {year}"
    except Exception:
        return month_key
