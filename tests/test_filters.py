"""Tests for dashboard filter normalization and application."""

from __future__ import annotations

from core.filters import (
    ALL,
    DashboardFilters,
    apply_filters,
    countries_in_scope,
    describe_filters,
    normalize_filters,
)


def test_normalize_filters_defaults_to_all() -> None:
    """Missing fields mean every country, sector and year."""

    f = normalize_filters({})
    assert f == DashboardFilters(country=ALL, sector=ALL, start=None, end=None)


def test_normalize_filters_accepts_todos_and_unknown_options() -> None:
    """"Todos" and unknown sectors both fall back to all."""

    f = normalize_filters({"country": "Todos", "sector": "Quantum"}, available_sectors=["AI", "Robotics"])
    assert f.country == ALL
    assert f.sector == ALL


def test_normalize_filters_keeps_inverted_year_range() -> None:
    """Year bounds are parsed but never reordered."""

    f = normalize_filters({"country": "Japan", "start": "2022", "end": 2018})
    assert f.country == "Japan"
    assert (f.start, f.end) == (2022, 2018)


def test_inverted_year_range_selects_nothing(records) -> None:
    """A start after the end matches no rows."""

    out = apply_filters(records, normalize_filters({"start": 2021, "end": 2019}))
    assert out.empty


def test_apply_filters_combines_country_sector_and_years(records) -> None:
    """Every filter field narrows the rows together."""

    f = DashboardFilters(country="China", sector="AI", start=2020, end=2021)
    out = apply_filters(records, f)
    assert len(out) == 2
    assert set(out["country"]) == {"China"}
    assert set(out["tech_sector"]) == {"AI"}
    assert sorted(int(y) for y in out["year"]) == [2020, 2021]


def test_apply_filters_all_keeps_everything(records) -> None:
    """Default filters keep every row."""

    assert len(apply_filters(records, DashboardFilters())) == len(records)


def test_apply_filters_handles_missing_frame() -> None:
    """No frame in gives an empty frame out."""

    assert apply_filters(None, DashboardFilters()).empty


def test_describe_filters_chips() -> None:
    """Render one chip per filter field."""

    assert describe_filters(DashboardFilters()) == ["Country: All", "Sector: All", "Years: All"]
    chips = describe_filters(DashboardFilters(country="China", sector="AI", start=2019, end=2021))
    assert chips == ["Country: China", "Sector: AI", "Years: 2019–2021"]


def test_countries_in_scope() -> None:
    """List the countries a chart should draw."""

    assert countries_in_scope(DashboardFilters()) == ["China", "Japan"]
    assert countries_in_scope(DashboardFilters(country="Japan")) == ["Japan"]
