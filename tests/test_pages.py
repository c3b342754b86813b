"""Tests for the infrastructure, innovation and investment pages."""

from __future__ import annotations

import pandas as pd

from core.data import load_dashboard_data, prepare_context
from core.filters import DashboardFilters
from core.metrics_infra import compute_infra, infra_charts
from core.metrics_innovation import compute_innovation, innovation_charts
from core.metrics_invest import compute_invest, invest_charts
from core.pipeline import Dimensions


def _ctx(records: pd.DataFrame, filters: DashboardFilters) -> dict:
    data_ctx = {"records": records, "countries": ["China", "Japan"], "sectors": ["AI", "Robotics"], "years": [2021, 2020, 2019]}
    return prepare_context(filters, data_ctx)


def test_infra_charts_follow_country_filter() -> None:
    """The country filter picks which line charts appear."""

    ids = [c.chart_id for c in infra_charts(DashboardFilters())]
    assert ids == ["internet_5g_china", "internet_5g_japan", "exports_treemap", "market_share_spider"]
    ids = [c.chart_id for c in infra_charts(DashboardFilters(country="Japan"))]
    assert ids == ["internet_5g_japan", "exports_treemap", "market_share_spider"]


def test_compute_infra(records) -> None:
    """Build the infrastructure page payload."""

    filters = DashboardFilters()
    page = compute_infra(filters, _ctx(records, filters), Dimensions(width=400, height=300))
    assert page["row_count"] == 12
    assert page["filters"]["country"] == "all"
    internet = page["charts"]["internet_5g_china"]
    assert not internet["is_empty"]
    assert internet["tooltip"]["chart_id"] == "internet_5g_china"
    assert [s["name"] for s in internet["render"]["lines"]] == ["Internet Penetration", "5G Coverage"]
    spider = page["charts"]["market_share_spider"]["render"]
    # sectors without data stay on the web as zero spokes
    assert len(spider["axes"]["spokes"]) == 7
    assert [p["name"] for p in spider["polygons"]] == ["China", "Japan"]


def test_innovation_charts_layout() -> None:
    """Innovation charts follow the country filter."""

    ids = [c.chart_id for c in innovation_charts(DashboardFilters(country="China"))]
    assert ids == ["ranking_china", "rnd_vs_patents", "collaborations_china"]


def test_compute_innovation(records) -> None:
    """Build the innovation page payload."""

    filters = DashboardFilters(country="China")
    page = compute_innovation(filters, _ctx(records, filters))
    assert page["row_count"] == 6
    ranking = page["charts"]["ranking_china"]["render"]
    assert ranking["lines"][0]["name"] == "Average"
    scatter = page["charts"]["rnd_vs_patents"]["render"]
    assert len(scatter["points"]) == 6


def test_invest_charts_ids() -> None:
    """List the investment page charts in order."""

    ids = [c.chart_id for c in invest_charts(DashboardFilters())]
    assert ids == [
        "startups_per_year",
        "vc_funding_per_year",
        "global_ranking_by_sector",
        "vc_investment_by_sector",
        "tech_workers_by_sector",
    ]


def test_compute_invest_uses_sums_and_means(records) -> None:
    """Yearly totals are sums and sector bars mix sums and means."""

    filters = DashboardFilters()
    page = compute_invest(filters, _ctx(records, filters))
    startups = page["charts"]["startups_per_year"]["render"]["lines"]
    assert [p["value"] for p in startups[0]["points"]] == [200.0, 202.0, 204.0]
    vc = page["charts"]["vc_investment_by_sector"]["render"]["rects"]
    # 1bn per row, three years per country and sector
    assert {r["value"] for r in vc} == {3.0}
    ranking = page["charts"]["global_ranking_by_sector"]["render"]["rects"]
    china_ai = [r for r in ranking if r["series"] == "China" and r["key"] == "AI"][0]
    assert china_ai["value"] == 11.0


def test_invest_lines_follow_country_filter(records) -> None:
    """With one country selected the yearly lines show only that country."""

    filters = DashboardFilters(country="Japan")
    page = compute_invest(filters, _ctx(records, filters))
    render = page["charts"]["startups_per_year"]["render"]
    assert [s["name"] for s in render["lines"]] == ["Japan"]
    assert [item["label"] for item in render["legend"]] == ["Japan"]


def test_pages_with_no_matching_rows_are_empty(records) -> None:
    """A filter matching nothing gives empty charts."""

    filters = DashboardFilters(start=1990, end=1991)
    page = compute_invest(filters, _ctx(records, filters))
    assert page["row_count"] == 0
    assert all(chart["is_empty"] for chart in page["charts"].values())


def test_pages_run_on_bundled_dataset(bundled_data_file) -> None:
    """Every page renders from the shipped dataset."""

    data_ctx = load_dashboard_data(bundled_data_file)
    filters = DashboardFilters(country="Japan", start=2018, end=2022)
    ctx = prepare_context(filters, data_ctx)
    for compute in (compute_infra, compute_innovation, compute_invest):
        page = compute(filters, ctx)
        assert page["row_count"] == 35
        assert not any(chart["is_empty"] for chart in page["charts"].values())
