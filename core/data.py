from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import pandas as pd

from core.filters import DashboardFilters, apply_filters, normalize_filters


logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DEFAULT_DATA_FILE = "tech_sector_stats.csv"
DATA_FILE_ENV = "TECHDASH_DATA_FILE"

SOURCE_COLUMNS = {
    "Country": "country",
    "Tech Sector": "tech_sector",
    "Year": "year",
    "Internet Penetration (%)": "internet_penetration_pct",
    "5G Network Coverage (%)": "coverage_5g_pct",
    "Tech Exports (in USD)": "tech_exports_usd",
    "Market Share (%)": "market_share_pct",
    "Global Innovation Ranking": "global_innovation_ranking",
    "Number of Patents Filed (Annual)": "patents_filed",
    "R&D Investment (in USD)": "rnd_investment_usd",
    "University Research Collaborations": "research_collaborations",
    "Number of Startups": "startups",
    "Venture Capital Funding (in USD)": "vc_funding_usd",
    "Number of Tech Workers": "tech_workers",
}


@dataclass(frozen=True)
class Record:
    """One row of the source table, after coercion."""

    country: str
    tech_sector: str
    year: int
    internet_penetration_pct: float
    coverage_5g_pct: float
    tech_exports_usd: float
    market_share_pct: float
    global_innovation_ranking: float
    patents_filed: float
    rnd_investment_usd: float
    research_collaborations: float
    startups: float
    vc_funding_usd: float
    tech_workers: float


_DTYPES = {"str": "string", "int": "Int64", "float": "float64"}

# Frame column -> pandas dtype, in Record field order.
RECORD_SCHEMA: Dict[str, str] = {f.name: _DTYPES[str(f.type)] for f in fields(Record)}
KEY_COLUMNS = [name for name, dtype in RECORD_SCHEMA.items() if dtype != "float64"]
METRIC_COLUMNS = [name for name, dtype in RECORD_SCHEMA.items() if dtype == "float64"]


def get_data_file() -> Path:
    override = os.environ.get(DATA_FILE_ENV)
    if override:
        return Path(override)
    return DATA_DIR / DEFAULT_DATA_FILE


def file_signature(path: Path) -> Tuple[str, float]:
    return (str(path), path.stat().st_mtime)


def empty_records() -> pd.DataFrame:
    return pd.DataFrame({name: pd.Series(dtype=dtype) for name, dtype in RECORD_SCHEMA.items()})


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA})
            df[col] = series
    return df


def coerce_records(raw: pd.DataFrame) -> pd.DataFrame:
    """Rename source headers and coerce every field to the record schema.

    Rows without a country, sector or year cannot be placed on any chart and
    are dropped. Metric cells that are not numeric become NaN; consumers
    decide whether that is drawn as 0 or skipped.
    """
    if raw is None or raw.empty:
        return empty_records()

    df = raw.rename(columns={k: v for k, v in SOURCE_COLUMNS.items() if k in raw.columns}).copy()
    df = df.loc[:, ~df.columns.duplicated()]
    for col in METRIC_COLUMNS:
        if col not in df.columns:
            df[col] = float("nan")

    df = coerce_str_safe(df, ["country", "tech_sector"])
    present_before = int(df[METRIC_COLUMNS].notna().sum().sum())
    df = numericize(df, METRIC_COLUMNS + ["year"])
    present_after = int(df[METRIC_COLUMNS].notna().sum().sum())
    if present_after < present_before:
        logger.warning("Coerced %d non-numeric metric cells to NaN", present_before - present_after)

    before = len(df)
    df = df.dropna(subset=KEY_COLUMNS)
    if len(df) < before:
        logger.warning("Dropped %d rows without country/sector/year", before - len(df))

    df["year"] = df["year"].astype(int)
    return df[list(RECORD_SCHEMA)].astype(RECORD_SCHEMA).reset_index(drop=True)


@lru_cache(maxsize=4)
def _load_records_cached(signature: Tuple[str, float]) -> pd.DataFrame:
    path = Path(signature[0])
    logger.info("Loading records from %s", path)
    raw = pd.read_csv(path, dtype=str, keep_default_na=True)
    return coerce_records(raw)


def load_records(path: Optional[Path] = None) -> pd.DataFrame:
    path = Path(path) if path is not None else get_data_file()
    if not path.exists():
        logger.warning("Data file %s not found", path)
        return empty_records()
    return _load_records_cached(file_signature(path)).copy()


def available_options(df: pd.DataFrame) -> Dict[str, list]:
    if df is None or df.empty:
        return {"countries": [], "sectors": [], "years": []}
    return {
        "countries": sorted(str(x) for x in df["country"].dropna().unique()),
        "sectors": sorted(str(x) for x in df["tech_sector"].dropna().unique()),
        "years": sorted((int(x) for x in df["year"].dropna().unique()), reverse=True),
    }


# ---------------- Public API (Streamlit parity + FastAPI use) ----------------
def load_dashboard_data(path: Optional[Path] = None) -> Dict[str, object]:
    records = load_records(path)
    options = available_options(records)
    return {"records": records, **options}


def prepare_context(filters: dict | DashboardFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    records: pd.DataFrame = data_ctx.get("records", empty_records())  # type: ignore[assignment]
    filt = (
        filters
        if isinstance(filters, DashboardFilters)
        else normalize_filters(filters, available_sectors=data_ctx.get("sectors") or None)  # type: ignore[arg-type]
    )
    filtered = apply_filters(records, filt)
    return {
        "filters": filt,
        "records": records,
        "filtered_records": filtered,
    }
