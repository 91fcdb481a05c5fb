from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from audit_core.classify import DEFAULT_EXCLUSIONS, ClassificationReport, ClassifiedRow, ExclusionRules, classify_with_report
from audit_core.filters import FilterCriteria, apply_filters
from audit_core.schema import DEFAULT_SCHEMA, ColumnSchema, RawMatrix, SchemaDefaults, detect_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineContext:
    """Everything derived from one raw matrix. Replaced wholesale on refresh."""

    matrix: List[List[str]]
    schema: ColumnSchema
    rows: List[ClassifiedRow]
    report: ClassificationReport = field(default_factory=ClassificationReport)
    loaded_at: Optional[datetime] = None

    @property
    def headers(self) -> List[str]:
        return list(self.schema.headers)

    def filtered(self, criteria: Optional[FilterCriteria]) -> List[ClassifiedRow]:
        return apply_filters(self.rows, criteria)


def build_context(
    matrix: RawMatrix,
    *,
    defaults: SchemaDefaults = DEFAULT_SCHEMA,
    rules: ExclusionRules = DEFAULT_EXCLUSIONS,
    loaded_at: Optional[datetime] = None,
) -> PipelineContext:
    schema = detect_schema(matrix, defaults)
    rows, report = classify_with_report(matrix, schema, rules)
    logger.info(
        "Pipeline built: %d data rows from %d raw rows (header row %d, %d artifacts excluded)",
        len(rows),
        len(matrix),
        schema.header_row_index + 1,
        report.excluded_rows,
    )
    return PipelineContext(
        matrix=[list(r or []) for r in matrix],
        schema=schema,
        rows=rows,
        report=report,
        loaded_at=loaded_at or datetime.now(),
    )
