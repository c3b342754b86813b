from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from core.charts import chart_payload
from core.filters import DashboardFilters, countries_in_scope
from core.pipeline import ChartConfig, Dimensions


def innovation_charts(filters: DashboardFilters) -> List[ChartConfig]:
    charts: List[ChartConfig] = []
    for country in countries_in_scope(filters):
        charts.append(
            ChartConfig(
                chart_id=f"ranking_{country.lower()}",
                family="line",
                title=f"Global Innovation Ranking by Sector - {country}",
                value="global_innovation_ranking",
                series_by="tech_sector",
                where={"country": country},
                colors={},
                average_line=True,
                x_label="Year",
                y_label="Average Ranking",
            )
        )
    charts.append(
        ChartConfig(
            chart_id="rnd_vs_patents",
            family="scatter",
            title="R&D Investment vs Patents Filed",
            x_field="rnd_investment_usd",
            y_field="patents_filed",
            x_scale="log",
            x_label="R&D Investment (USD)",
            y_label="Patents Filed",
            value_format=",.0f",
        )
    )
    for country in countries_in_scope(filters):
        charts.append(
            ChartConfig(
                chart_id=f"collaborations_{country.lower()}",
                family="histogram",
                title=f"Research Collaborations vs Patents - {country}",
                group_by="tech_sector",
                x_field="research_collaborations",
                y_field="patents_filed",
                where={"country": country},
                x_label="University Research Collaborations",
                y_label="Number of Patents",
                value_format=",.0f",
            )
        )
    return charts


def compute_innovation(filters: DashboardFilters, ctx: Dict[str, Any], dims: Optional[Dimensions] = None) -> Dict[str, Any]:
    records: pd.DataFrame = ctx.get("filtered_records", pd.DataFrame())
    return {
        "filters": asdict(filters),
        "row_count": int(len(records)),
        "charts": {config.chart_id: chart_payload(config, records, dims) for config in innovation_charts(filters)},
    }
