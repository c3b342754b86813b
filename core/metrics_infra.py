from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from core.charts import chart_payload
from core.filters import COUNTRIES, SECTORS, DashboardFilters, countries_in_scope
from core.pipeline import ChartConfig, Dimensions


INTERNET_COLORS = {"internet_penetration_pct": "#345d7e", "coverage_5g_pct": "#e63946"}


def infra_charts(filters: DashboardFilters) -> List[ChartConfig]:
    charts: List[ChartConfig] = []
    for country in countries_in_scope(filters):
        charts.append(
            ChartConfig(
                chart_id=f"internet_5g_{country.lower()}",
                family="line",
                title=f"Internet Usage and 5G Coverage - {country}",
                values=("internet_penetration_pct", "coverage_5g_pct"),
                labels={"internet_penetration_pct": "Internet Penetration", "coverage_5g_pct": "5G Coverage"},
                where={"country": country},
                colors=INTERNET_COLORS,
                y_domain=(0.0, 100.0),
                x_label="Year",
                y_label="Value (%)",
                value_suffix="%",
            )
        )
    charts.append(
        ChartConfig(
            chart_id="exports_treemap",
            family="treemap",
            title="Tech Exports by Sector",
            value="tech_exports_usd",
            group_by="tech_sector",
            scale_factor=1e9,
            x_label="Sector",
            y_label="Tech Exports (USD)",
            value_prefix="$",
            value_suffix="B",
        )
    )
    charts.append(
        ChartConfig(
            chart_id="market_share_spider",
            family="radial",
            title="Market Distribution",
            value="market_share_pct",
            group_by="tech_sector",
            series_by="country",
            series=COUNTRIES,
            axes=SECTORS,
            x_label="Sector",
            y_label="Market Share",
            value_suffix="%",
        )
    )
    return charts


def compute_infra(filters: DashboardFilters, ctx: Dict[str, Any], dims: Optional[Dimensions] = None) -> Dict[str, Any]:
    records: pd.DataFrame = ctx.get("filtered_records", pd.DataFrame())
    return {
        "filters": asdict(filters),
        "row_count": int(len(records)),
        "charts": {config.chart_id: chart_payload(config, records, dims) for config in infra_charts(filters)},
    }
