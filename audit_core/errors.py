from __future__ import annotations


class AuditDashboardError(Exception):
    """Base class for failures that abort a dashboard refresh."""


class SchemaError(AuditDashboardError):
    """The raw matrix is too small to infer a column layout from."""


class FetchError(AuditDashboardError):
    """The ingestion source failed or returned no rows."""

    def __init__(self, message: str, *, source: str = "", status_code: int | None = None):
        super().__init__(message)
        self.source = source
        self.status_code = status_code
