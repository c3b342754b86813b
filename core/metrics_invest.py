from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from core.charts import chart_payload
from core.filters import COUNTRIES, DashboardFilters
from core.pipeline import ChartConfig, Dimensions


def invest_charts(filters: DashboardFilters) -> List[ChartConfig]:
    by_year = dict(family="line", group_by="year", series_by="country", series=COUNTRIES, reducer="sum", x_label="Year")
    by_sector = dict(family="grouped_bar", group_by="tech_sector", series_by="country", series=COUNTRIES, x_label="Sector")
    return [
        ChartConfig(
            chart_id="startups_per_year",
            title="Number of Startups per Year",
            value="startups",
            y_label="Startups",
            value_format=",.0f",
            **by_year,
        ),
        ChartConfig(
            chart_id="vc_funding_per_year",
            title="Venture Capital Funding per Year",
            value="vc_funding_usd",
            scale_factor=1e9,
            y_label="VC Funding (USD bn)",
            value_prefix="$",
            value_suffix="B",
            **by_year,
        ),
        ChartConfig(
            chart_id="global_ranking_by_sector",
            title="Global Ranking by Sector",
            value="global_innovation_ranking",
            reducer="mean",
            y_label="Average Global Ranking",
            **by_sector,
        ),
        ChartConfig(
            chart_id="vc_investment_by_sector",
            title="Venture Capital Investment by Sector",
            value="vc_funding_usd",
            reducer="sum",
            scale_factor=1e9,
            y_label="VC Funding (USD bn)",
            value_prefix="$",
            value_suffix="B",
            **by_sector,
        ),
        ChartConfig(
            chart_id="tech_workers_by_sector",
            title="Number of Tech Workers by Sector",
            value="tech_workers",
            reducer="mean",
            y_label="Average Tech Workers",
            value_format=",.0f",
            **by_sector,
        ),
    ]


def compute_invest(filters: DashboardFilters, ctx: Dict[str, Any], dims: Optional[Dimensions] = None) -> Dict[str, Any]:
    records: pd.DataFrame = ctx.get("filtered_records", pd.DataFrame())
    return {
        "filters": asdict(filters),
        "row_count": int(len(records)),
        "charts": {config.chart_id: chart_payload(config, records, dims) for config in invest_charts(filters)},
    }
