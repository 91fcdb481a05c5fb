from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import pandas as pd

from audit_core.errors import FetchError
from audit_core.settings import Settings

logger = logging.getLogger(__name__)

SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def normalize_cell(value: object) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    return str(value)


def normalize_matrix(values: List[List[Any]]) -> List[List[str]]:
    """Coerce every cell to text; ragged rows are kept ragged."""
    return [[normalize_cell(v) for v in (row or [])] for row in values]


def build_values_url(sheet_id: str, range_name: str) -> str:
    return f"{SHEETS_API_BASE}/{sheet_id}/values/{quote(range_name, safe='!:')}"


class SheetsClient:
    """Read-only client for the Google Sheets values endpoint."""

    def __init__(
        self,
        sheet_id: str,
        range_name: str,
        *,
        api_key: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.sheet_id = sheet_id
        self.range_name = range_name
        self.api_key = api_key
        if not self.api_key:
            logger.warning("Google API key not configured. Only public sheets will be accessible.")
        self._client = httpx.Client(
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "SheetsClient":
        return cls(settings.sheet_id, settings.sheet_range, api_key=settings.api_key, timeout=settings.http_timeout, **kwargs)

    def close(self) -> None:
        self._client.close()

    def fetch_values(self) -> List[List[str]]:
        url = build_values_url(self.sheet_id, self.range_name)
        params = {"key": self.api_key} if self.api_key else None
        logger.info("Fetching sheet %s range %r", self.sheet_id, self.range_name)
        try:
            response = self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to reach Google Sheets: {exc}", source="sheets") from exc

        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise FetchError(
                f"Google Sheets returned a non-JSON response (HTTP {response.status_code})",
                source="sheets",
                status_code=response.status_code,
            ) from exc

        error = payload.get("error") if isinstance(payload, dict) else None
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise FetchError(
                message or "Failed to fetch data from Google Sheets",
                source="sheets",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise FetchError(f"Google Sheets API error (HTTP {response.status_code})", source="sheets", status_code=response.status_code)

        values = payload.get("values") or []
        if not values:
            raise FetchError("No data found in the specified sheet range", source="sheets", status_code=response.status_code)
        logger.info("Loaded %d rows from Google Sheets", len(values))
        return normalize_matrix(values)


def load_workbook_matrix(path: Path, sheet: Optional[str] = None) -> List[List[str]]:
    path = Path(path)
    if not path.exists():
        raise FetchError(f"Workbook not found: {path}", source="xlsx")
    try:
        df = pd.read_excel(path, sheet_name=sheet or 0, header=None, dtype=object)
    except Exception as exc:
        raise FetchError(f"Failed to read workbook {path.name}: {exc}", source="xlsx") from exc

    matrix = normalize_matrix(df.values.tolist())
    # read_excel pads short rows out to the widest one; trim the trailing blanks back off
    matrix = [row[: max((i + 1 for i, v in enumerate(row) if v.strip()), default=0)] for row in matrix]
    if not matrix:
        raise FetchError(f"No data found in {path.name}", source="xlsx")
    logger.info("Loaded %d rows from %s", len(matrix), path.name)
    return matrix


def load_matrix(settings: Settings) -> List[List[str]]:
    if settings.source == "xlsx":
        return load_workbook_matrix(settings.xlsx_path, settings.xlsx_sheet)
    if settings.source == "sheets":
        client = SheetsClient.from_settings(settings)
        try:
            return client.fetch_values()
        finally:
            client.close()
    raise FetchError("No data source configured; set AUDIT_SHEET_ID or AUDIT_XLSX_PATH", source="none")
