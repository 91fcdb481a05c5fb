from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_SHEET_RANGE = "Weekly Audit for Offices"
DEFAULT_REFRESH_SECONDS = 120.0
DEFAULT_HTTP_TIMEOUT = 30.0


@dataclass(frozen=True)
class Settings:
    sheet_id: str = ""
    sheet_range: str = DEFAULT_SHEET_RANGE
    api_key: str = ""
    xlsx_path: Optional[Path] = None
    xlsx_sheet: Optional[str] = None
    refresh_seconds: float = DEFAULT_REFRESH_SECONDS
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @property
    def source(self) -> str:
        if self.xlsx_path is not None:
            return "xlsx"
        if self.sheet_id:
            return "sheets"
        return "none"


def _as_positive_float(value: Optional[str], default: float) -> float:
    if not value:
        return default
    try:
        out = float(value)
    except Exception:
        logger.warning("Ignoring invalid numeric setting %r, using %s", value, default)
        return default
    return out if out > 0 else default


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    api_key = (env.get("GOOGLE_API_KEY") or env.get("GOOGLE_SHEETS_API_KEY") or "").strip()
    xlsx = (env.get("AUDIT_XLSX_PATH") or "").strip()
    return Settings(
        sheet_id=(env.get("AUDIT_SHEET_ID") or "").strip(),
        sheet_range=(env.get("AUDIT_SHEET_RANGE") or DEFAULT_SHEET_RANGE).strip(),
        api_key=api_key,
        xlsx_path=Path(xlsx) if xlsx else None,
        xlsx_sheet=(env.get("AUDIT_XLSX_SHEET") or "").strip() or None,
        refresh_seconds=_as_positive_float(env.get("AUDIT_REFRESH_SECONDS"), DEFAULT_REFRESH_SECONDS),
        http_timeout=_as_positive_float(env.get("AUDIT_HTTP_TIMEOUT"), DEFAULT_HTTP_TIMEOUT),
    )
