from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class FilterCriteriaModel(BaseModel):
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    locations: List[str] = Field(default_factory=list)
    persons: List[str] = Field(default_factory=list)
    status: Optional[str] = None


class TableViewModel(BaseModel):
    sort_column: Optional[int] = None
    sort_direction: str = "asc"
    visible_columns: Optional[List[int]] = None
    page_index: int = 1
    page_size: Union[int, str] = 25


class TableRequest(BaseModel):
    filters: FilterCriteriaModel = Field(default_factory=FilterCriteriaModel)
    view: TableViewModel = Field(default_factory=TableViewModel)


class MetaOptionsResponse(BaseModel):
    locations: List[str]
    persons: List[str]
    statuses: List[str]
    headers: List[str]


class RefreshResponse(BaseModel):
    status: str
    sync_status: str
    records: int
    error: Optional[str] = None
