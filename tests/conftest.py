"""Pytest fixtures shared across the dashboard tests."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from core.data import DATA_DIR, DEFAULT_DATA_FILE, coerce_records


def _row(country: str, sector: str, year: int, **metrics: float) -> dict:
    base = {
        "Country": country,
        "Tech Sector": sector,
        "Year": str(year),
        "Internet Penetration (%)": "60",
        "5G Network Coverage (%)": "20",
        "Tech Exports (in USD)": "2000000000",
        "Market Share (%)": "10",
        "Global Innovation Ranking": "12",
        "Number of Patents Filed (Annual)": "1000",
        "R&D Investment (in USD)": "500000000",
        "University Research Collaborations": "100",
        "Number of Startups": "300",
        "Venture Capital Funding (in USD)": "1000000000",
        "Number of Tech Workers": "50000",
    }
    base.update({k: str(v) for k, v in metrics.items()})
    return base


@pytest.fixture
def raw_rows() -> list[dict]:
    """Small source-shaped table: two countries, two sectors, three years."""

    rows = []
    for country, offset in (("China", 0), ("Japan", 5)):
        for sector in ("AI", "Robotics"):
            for year in (2019, 2020, 2021):
                rows.append(
                    _row(
                        country,
                        sector,
                        year,
                        **{
                            "Global Innovation Ranking": 10 + offset + (year - 2019),
                            "Number of Startups": 100 + offset * 10 + (year - 2019),
                        },
                    )
                )
    return rows


@pytest.fixture
def records(raw_rows) -> pd.DataFrame:
    """Coerced record frame built from ``raw_rows``."""

    return coerce_records(pd.DataFrame(raw_rows))


@pytest.fixture
def csv_path(tmp_path: Path, raw_rows) -> Path:
    """Write ``raw_rows`` to a CSV file and return its path."""

    path = tmp_path / "stats.csv"
    pd.DataFrame(raw_rows).to_csv(path, index=False)
    return path


@pytest.fixture
def bundled_data_file() -> Path:
    """Path of the dataset shipped under data/."""

    return DATA_DIR / DEFAULT_DATA_FILE
