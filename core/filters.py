from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

import pandas as pd


ALL = "all"
COUNTRIES = ("China", "Japan")
SECTORS = (
    "AI",
    "Biotechnology",
    "Cloud Computing",
    "Robotics",
    "Semiconductor",
    "Software",
    "Telecommunications",
)


@dataclass(frozen=True)
class DashboardFilters:
    country: str = ALL
    sector: str = ALL
    start: Optional[int] = None
    end: Optional[int] = None


def _as_year(value: object) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        return int(float(value))  # type: ignore[arg-type]
    except Exception:
        return None


def _as_choice(value: object, options: Optional[Iterable[str]] = None) -> str:
    if value is None:
        return ALL
    s = str(value).strip()
    if not s or s.lower() in {ALL, "todos"}:
        return ALL
    if options is not None and s not in set(options):
        return ALL
    return s


def normalize_filters(
    raw: dict,
    *,
    available_sectors: Optional[List[str]] = None,
) -> DashboardFilters:
    country = _as_choice(raw.get("country"), COUNTRIES)
    sector = _as_choice(raw.get("sector"), available_sectors)
    start = _as_year(raw.get("start"))
    end = _as_year(raw.get("end"))

    return DashboardFilters(country=country, sector=sector, start=start, end=end)


def apply_filters(df: pd.DataFrame, filters: DashboardFilters) -> pd.DataFrame:
    if df is None or df.empty:
        return pd.DataFrame() if df is None else df
    mask = pd.Series(True, index=df.index)
    if filters.country != ALL and "country" in df.columns:
        mask &= df["country"] == filters.country
    if filters.sector != ALL and "tech_sector" in df.columns:
        mask &= df["tech_sector"] == filters.sector
    if "year" in df.columns:
        if filters.start is not None:
            mask &= df["year"] >= filters.start
        if filters.end is not None:
            mask &= df["year"] <= filters.end
    return df[mask]


def describe_filters(filters: DashboardFilters) -> List[str]:
    country_chip = "Country: All" if filters.country == ALL else f"Country: {filters.country}"
    sector_chip = "Sector: All" if filters.sector == ALL else f"Sector: {filters.sector}"
    if filters.start is None and filters.end is None:
        year_chip = "Years: All"
    else:
        year_chip = f"Years: {filters.start if filters.start is not None else '…'}–{filters.end if filters.end is not None else '…'}"
    return [country_chip, sector_chip, year_chip]


def countries_in_scope(filters: DashboardFilters) -> List[str]:
    if filters.country == ALL:
        return list(COUNTRIES)
    return [filters.country] if filters.country in COUNTRIES else []
