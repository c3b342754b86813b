"""Tests for drawing chart renders with Altair."""

from __future__ import annotations

import json

import pandas as pd
import pytest

from core.charts import chart_payload, hover_at, mounted_chart, render_to_altair, to_vega_spec
from core.filters import COUNTRIES
from core.pipeline import ChartConfig, Dimensions, render_chart


CONFIGS = [
    ChartConfig("line", "line", value="startups", reducer="sum", series_by="country", series=COUNTRIES, average_line=True),
    ChartConfig("bars", "grouped_bar", value="tech_workers", group_by="tech_sector", series_by="country", series=COUNTRIES),
    ChartConfig("tree", "treemap", value="tech_exports_usd", group_by="tech_sector"),
    ChartConfig(
        "radar", "radial", value="market_share_pct", group_by="tech_sector", series_by="country", series=COUNTRIES
    ),
    ChartConfig("dots", "scatter", x_field="rnd_investment_usd", y_field="patents_filed", x_scale="log"),
    ChartConfig(
        "hist", "histogram", group_by="tech_sector", x_field="research_collaborations", y_field="patents_filed"
    ),
]

DIMS = Dimensions(width=480, height=320)


@pytest.mark.parametrize("config", CONFIGS, ids=lambda c: c.family)
def test_render_to_altair_produces_a_layered_spec(config, records) -> None:
    """Every family draws a layered chart with a hover layer on top."""

    render = render_chart(config, records, DIMS)
    spec = to_vega_spec(render_to_altair(render))
    assert spec["width"] == 480
    assert spec["height"] == 320
    assert len(spec["layer"]) >= 2
    # hover layer is painted last and carries the tooltip
    assert "tooltip" in spec["layer"][-1]["encoding"]


def test_empty_render_draws_an_empty_chart() -> None:
    """An empty render still has the requested size."""

    render = render_chart(CONFIGS[0], pd.DataFrame(), Dimensions(width=300, height=200))
    spec = to_vega_spec(render_to_altair(render))
    assert "layer" not in spec
    assert spec["width"] == 300


def test_chart_payload_is_json_serializable(records) -> None:
    """Payloads carry the render and a JSON-ready Vega spec."""

    payload = chart_payload(CONFIGS[1], records)
    assert payload["family"] == "grouped_bar"
    assert payload["is_empty"] is False
    json.dumps(payload["vega"])
    assert len(payload["render"]["rects"]) == 4


def test_chart_payload_carries_idle_tooltip(records) -> None:
    """Each payload holds its own mounted, hidden tooltip."""

    tooltip = chart_payload(CONFIGS[1], records)["tooltip"]
    assert tooltip["chart_id"] == "bars"
    assert tooltip["mounted"] is True
    assert tooltip["visible"] is False
    assert tooltip["content"] == {}


def test_mounted_chart_releases_tooltip_on_exit(records) -> None:
    """The chart's tooltip is released once the block exits."""

    with mounted_chart(CONFIGS[1], records, DIMS) as (render, controller):
        assert controller.targets == render.hover_targets
        assert controller.tooltip.mounted
    assert not controller.tooltip.mounted


def test_hover_at_bar_center_shows_tooltip(records) -> None:
    """A pointer over a bar shows that bar's tooltip."""

    render = render_chart(CONFIGS[1], records, DIMS)
    bar = render.rects[0]
    ox, oy = render.origin
    state = hover_at(CONFIGS[1], records, ox + bar.x + bar.width / 2, oy + bar.y + bar.height / 2, DIMS)
    assert state["visible"] is True
    assert state["content"]["title"] == bar.series
    assert state["content"]["key"] == str(bar.key)


def test_hover_at_outside_targets_hides_tooltip(records) -> None:
    """A pointer away from every target leaves the tooltip hidden."""

    state = hover_at(CONFIGS[1], records, -50, -50, DIMS)
    assert state["mounted"] is True
    assert state["visible"] is False
