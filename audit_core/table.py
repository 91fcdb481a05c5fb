from __future__ import annotations

import math
import re
import unicodedata
from dataclasses import dataclass, field, replace
from functools import cmp_to_key
from typing import List, Literal, Optional, Sequence, Tuple, Union

from audit_core.classify import ClassifiedRow, StatusCategory

PageSize = Union[int, Literal["all"]]

DEFAULT_PAGE_SIZE = 25
PAGE_WINDOW = 5


@dataclass(frozen=True)
class TableViewState:
    sort_column: Optional[int] = None
    sort_direction: Literal["asc", "desc"] = "asc"
    visible_columns: Optional[Tuple[int, ...]] = None
    page_index: int = 1
    page_size: PageSize = DEFAULT_PAGE_SIZE


@dataclass(frozen=True)
class TablePage:
    page_rows: List[List[str]]
    total_rows: int
    total_pages: int
    showing_range_start: int
    showing_range_end: int
    page_index: int = 1
    headers: List[str] = field(default_factory=list)
    off_track_flags: List[bool] = field(default_factory=list)
    page_window: List[int] = field(default_factory=list)


def _as_page_size(value: object) -> PageSize:
    if isinstance(value, str) and value.strip().lower() == "all":
        return "all"
    try:
        size = int(value)  # type: ignore[arg-type]
    except Exception:
        return DEFAULT_PAGE_SIZE
    return size if size > 0 else DEFAULT_PAGE_SIZE


def normalize_view_state(raw: Optional[dict], column_count: Optional[int] = None) -> TableViewState:
    raw = raw or {}

    sort_column: Optional[int]
    try:
        sort_column = int(raw["sort_column"]) if raw.get("sort_column") is not None else None
    except Exception:
        sort_column = None
    if sort_column is not None and (sort_column < 0 or (column_count is not None and sort_column >= column_count)):
        sort_column = None

    direction = str(raw.get("sort_direction") or "asc").strip().lower()
    sort_direction: Literal["asc", "desc"] = "desc" if direction == "desc" else "asc"

    visible: Optional[Tuple[int, ...]] = None
    if raw.get("visible_columns") is not None:
        cols = set()
        for v in raw.get("visible_columns") or []:
            try:
                i = int(v)
            except Exception:
                continue
            if i >= 0 and (column_count is None or i < column_count):
                cols.add(i)
        visible = tuple(sorted(cols))

    try:
        page_index = max(1, int(raw.get("page_index", 1)))
    except Exception:
        page_index = 1

    return TableViewState(
        sort_column=sort_column,
        sort_direction=sort_direction,
        visible_columns=visible,
        page_index=page_index,
        page_size=_as_page_size(raw.get("page_size", DEFAULT_PAGE_SIZE)),
    )


# ---------------- State transitions ----------------
def toggle_sort(state: TableViewState, column: int) -> TableViewState:
    if state.sort_column == column:
        return replace(state, sort_direction="desc" if state.sort_direction == "asc" else "asc")
    return replace(state, sort_column=column, sort_direction="asc")


def toggle_column(state: TableViewState, column: int, column_count: int) -> TableViewState:
    current = list(state.visible_columns) if state.visible_columns is not None else list(range(column_count))
    if column in current:
        current.remove(column)
    else:
        current.append(column)
    return replace(state, visible_columns=tuple(sorted(current)))


def change_page(state: TableViewState, page: int, total_pages: int) -> TableViewState:
    if page < 1 or page > total_pages:
        return state
    return replace(state, page_index=page)


def change_page_size(state: TableViewState, size: object) -> TableViewState:
    return replace(state, page_size=_as_page_size(size), page_index=1)


# ---------------- Sorting ----------------
_NUMBER = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")


def _as_number(text: str) -> Optional[float]:
    s = (text or "").strip()
    if not _NUMBER.fullmatch(s):
        return None
    value = float(s)
    return value if math.isfinite(value) else None


def collation_key(text: str) -> Tuple[str, str, str]:
    """Sort key that ignores accents and case first, then lowercase before uppercase."""
    folded = (text or "").casefold()
    base = "".join(c for c in unicodedata.normalize("NFKD", folded) if not unicodedata.combining(c))
    return base, folded, (text or "").swapcase()


def compare_cells(a: str, b: str) -> int:
    na, nb = _as_number(a), _as_number(b)
    if na is not None and nb is not None:
        return (na > nb) - (na < nb)
    ka, kb = collation_key(a), collation_key(b)
    return (ka > kb) - (ka < kb)


def sort_rows(rows: Sequence[ClassifiedRow], column: Optional[int], direction: str = "asc") -> List[ClassifiedRow]:
    if column is None:
        return list(rows)
    key = cmp_to_key(compare_cells)
    # sorted() stays stable with reverse=True, so equal cells keep their input order either way
    return sorted(rows, key=lambda r: key(r.cell(column)), reverse=(direction == "desc"))


# ---------------- Pagination / projection ----------------
def page_window(page_index: int, total_pages: int, max_pages: int = PAGE_WINDOW) -> List[int]:
    if total_pages < 1:
        return []
    start = max(1, page_index - max_pages // 2)
    end = min(total_pages, start + max_pages - 1)
    if end - start + 1 < max_pages:
        start = max(1, end - max_pages + 1)
    return list(range(start, end + 1))


def resolve_columns(visible_columns: Optional[Sequence[int]], column_count: int) -> List[int]:
    if visible_columns is None:
        return list(range(column_count))
    return sorted({int(i) for i in visible_columns if int(i) >= 0})


def column_count(rows: Sequence[ClassifiedRow], headers: Optional[Sequence[str]] = None) -> int:
    widest = max((len(r.cells) for r in rows), default=0)
    return max(widest, len(headers or []))


def project(row: ClassifiedRow, columns: Sequence[int]) -> List[str]:
    return [row.cell(i) for i in columns]


def build_table_view(
    rows: Sequence[ClassifiedRow],
    state: TableViewState,
    headers: Optional[Sequence[str]] = None,
) -> TablePage:
    ordered = sort_rows(rows, state.sort_column, state.sort_direction)
    total = len(ordered)

    if state.page_size == "all":
        total_pages = 1
        page_index = 1
        page = ordered
        start, end = (1 if total else 0), total
    else:
        size = int(state.page_size)
        total_pages = max(1, math.ceil(total / size))
        page_index = min(max(1, int(state.page_index)), total_pages)
        offset = (page_index - 1) * size
        page = ordered[offset : offset + size]
        start, end = (offset + 1 if total else 0), min(offset + size, total)

    columns = resolve_columns(state.visible_columns, column_count(rows, headers))
    header_row = list(headers or [])
    return TablePage(
        page_rows=[project(r, columns) for r in page],
        total_rows=total,
        total_pages=total_pages,
        showing_range_start=start,
        showing_range_end=end,
        page_index=page_index,
        headers=[header_row[i] if i < len(header_row) else "" for i in columns],
        off_track_flags=[r.status is StatusCategory.OFF_TRACK for r in page],
        page_window=page_window(page_index, total_pages),
    )


# ---------------- Export ----------------
def quote_cell(value: object) -> str:
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'


def export_projection(
    rows: Sequence[ClassifiedRow],
    visible_columns: Optional[Sequence[int]],
    headers: Optional[Sequence[str]] = None,
) -> List[List[str]]:
    columns = resolve_columns(visible_columns, column_count(rows, headers))
    out: List[List[str]] = []
    if headers is not None:
        out.append([quote_cell(headers[i] if i < len(headers) else "") for i in columns])
    out.extend([quote_cell(c) for c in project(r, columns)] for r in rows)
    return out


def to_csv_text(projection: Sequence[Sequence[str]], delimiter: str = ",") -> str:
    return "".join(delimiter.join(cells) + "\n" for cells in projection)
