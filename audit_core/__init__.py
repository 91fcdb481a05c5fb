"""Core (UI-agnostic) audit dashboard logic.

This package contains:
- ingestion (Google Sheets values API / XLSX -> text matrix)
- header layout detection and row classification
- aggregates, filters and the paginated table view
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
