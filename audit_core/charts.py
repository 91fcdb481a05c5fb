from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import altair as alt
import pandas as pd

from audit_core.aggregates import AggregateSnapshot, format_month_label
from audit_core.classify import StatusCategory

alt.data_transformers.disable_max_rows()

STATUS_COLORS = {
    StatusCategory.ON_TRACK.value: "#10b981",
    StatusCategory.OFF_TRACK.value: "#ef4444",
    StatusCategory.OTHER.value: "#9ca3af",
}
PALETTE = [
    "#2563eb", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6", "#06b6d4",
    "#ec4899", "#14b8a6", "#f97316", "#6366f1", "#84cc16", "#a855f7",
]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _status_scale() -> alt.Scale:
    return alt.Scale(domain=list(STATUS_COLORS), range=list(STATUS_COLORS.values()))


def location_distribution_chart(snapshot: AggregateSnapshot) -> alt.Chart:
    df = pd.DataFrame([asdict(x) for x in snapshot.location_distribution])
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=60, stroke="#fff", strokeWidth=3)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color("location:N", title="Office", scale=alt.Scale(range=PALETTE), sort=df["location"].tolist()),
            tooltip=["location", alt.Tooltip("count:Q", format=","), alt.Tooltip("percent:Q", title="Share %", format=".1f")],
        )
        .properties(height=320)
    )


def status_chart(snapshot: AggregateSnapshot) -> alt.Chart:
    df = pd.DataFrame([{"status": s.status.value, "count": s.count, "percent": s.percent} for s in snapshot.status_breakdown])
    df = df[df["count"] > 0]
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=70)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color("status:N", title="Rock Review", scale=_status_scale()),
            tooltip=["status", "count", alt.Tooltip("percent:Q", title="%", format=".1f")],
        )
        .properties(height=280)
    )


def location_status_chart(snapshot: AggregateSnapshot) -> alt.Chart:
    wide = pd.DataFrame([asdict(x) for x in snapshot.per_location_breakdown])
    long_df = wide.melt(
        id_vars=["location", "total"],
        value_vars=["on_track", "off_track", "other"],
        var_name="metric",
        value_name="count",
    )
    long_df["status"] = long_df["metric"].map(
        {
            "on_track": StatusCategory.ON_TRACK.value,
            "off_track": StatusCategory.OFF_TRACK.value,
            "other": StatusCategory.OTHER.value,
        }
    )
    return (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            y=alt.Y("location:N", title=None, sort=wide["location"].tolist()),
            x=alt.X("count:Q", stack="zero", title="Records", axis=alt.Axis(format="d")),
            color=alt.Color("status:N", title="Status", scale=_status_scale()),
            tooltip=["location", "status", "count", "total"],
        )
        .properties(height=max(200, 32 * len(wide)))
    )


def monthly_trend_chart(snapshot: AggregateSnapshot) -> alt.LayerChart:
    df = pd.DataFrame([asdict(x) for x in snapshot.monthly_trend])
    df["month"] = df["month_key"].map(format_month_label)
    base = alt.Chart(df).encode(x=alt.X("month:N", title="Month", sort=df["month"].tolist()))
    volume = base.mark_bar(opacity=0.3, color="#2a5298").encode(
        y=alt.Y("total_records:Q", title="Total Records", axis=alt.Axis(orient="right")),
        tooltip=["month", alt.Tooltip("total_records:Q", title="Records")],
    )
    rate = base.mark_line(point={"filled": True, "size": 60}, color="#10b981").encode(
        y=alt.Y("on_track_percent:Q", title="On-Track %", scale=alt.Scale(domain=[0, 100])),
        tooltip=["month", alt.Tooltip("on_track_percent:Q", title="On-Track %", format=".1f")],
    )
    return alt.layer(volume, rate).resolve_scale(y="independent").properties(height=360)


def build_charts(snapshot: AggregateSnapshot) -> Dict[str, Any]:
    charts: Dict[str, Any] = {}
    if snapshot.location_distribution:
        charts["location_distribution"] = to_vega_spec(location_distribution_chart(snapshot))
    if snapshot.total_records:
        charts["status"] = to_vega_spec(status_chart(snapshot))
    if snapshot.per_location_breakdown:
        charts["location_status"] = to_vega_spec(location_status_chart(snapshot))
    if snapshot.monthly_trend:
        charts["monthly_trend"] = to_vega_spec(monthly_trend_chart(snapshot))
    return charts
