from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

from audit_core.aggregates import compute_snapshot, format_month_label, rate_band, success_label
from audit_core.charts import build_charts
from audit_core.filters import FilterCriteria, criteria_to_dict, describe_criteria
from audit_core.pipeline import PipelineContext


def compute_overview(criteria: Optional[FilterCriteria], ctx: PipelineContext, *, include_charts: bool = True) -> Dict[str, Any]:
    criteria = criteria or FilterCriteria()
    rows = ctx.filtered(criteria)
    snapshot = compute_snapshot(rows)

    kpis = {
        "total_records": snapshot.total_records,
        "total_locations": snapshot.total_locations,
        "on_track_rate": snapshot.on_track_rate,
        "on_track_count": snapshot.on_track_count,
        "on_track_band": rate_band(snapshot.on_track_rate),
        "on_track_label": success_label(snapshot.on_track_rate),
        "average_rating": snapshot.average_rating,
        "rating_count": snapshot.rating_count,
        # ratings are out of 10, bands are on the percent scale
        "rating_band": rate_band(snapshot.average_rating * 10),
    }

    payload = asdict(snapshot)
    for point in payload["monthly_trend"]:
        point["label"] = format_month_label(point["month_key"])
    for share in payload["status_breakdown"]:
        share["status"] = share["status"].value

    return {
        "filters": criteria_to_dict(criteria),
        "active_filters": describe_criteria(criteria),
        "filtered_records": len(rows),
        "source_records": len(ctx.rows),
        "loaded_at": ctx.loaded_at.isoformat() if ctx.loaded_at else None,
        "kpis": kpis,
        "snapshot": payload,
        "charts": build_charts(snapshot) if include_charts else {},
    }
