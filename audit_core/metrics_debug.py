from __future__ import annotations

from collections import Counter
from dataclasses import asdict
from typing import Any, Dict

from audit_core.pipeline import PipelineContext


def compute_debug(ctx: PipelineContext) -> Dict[str, Any]:
    schema = ctx.schema
    statuses = Counter(r.status.value for r in ctx.rows)
    raw_status_values = Counter(r.cell(schema.status).strip() for r in ctx.rows)
    return {
        "row_counts": {
            "raw_rows": len(ctx.matrix),
            "body_rows": ctx.report.body_rows,
            "classified_rows": len(ctx.rows),
        },
        "schema": {
            "header_row_index": schema.header_row_index,
            "data_start_row_index": schema.data_start_row_index,
            "columns": {
                role: {"index": idx, "header": schema.header_for(idx)}
                for role, idx in [
                    ("location", schema.location),
                    ("person", schema.person),
                    ("date", schema.date),
                    ("status", schema.status),
                    ("rating", schema.rating),
                ]
            },
        },
        "cleaning_checks": asdict(ctx.report),
        "status_counts": dict(statuses),
        "raw_status_values": dict(raw_status_values.most_common(20)),
        "rows_without_date": sum(1 for r in ctx.rows if r.parsed_date is None),
    }
