from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    country: str = "all"
    sector: str = "all"
    start: Optional[int] = None
    end: Optional[int] = None


class MetaOptionsResponse(BaseModel):
    countries: List[str] = Field(default_factory=list)
    sectors: List[str] = Field(default_factory=list)
    years: List[int] = Field(default_factory=list)
