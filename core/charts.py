"""Draw a computed ChartRender with Altair.

Geometry is already in pixels, so every encoding uses ``scale=None``: the
values are handed to Vega-Lite as-is (y grows downwards). Hover behaviour is a
transparent layer painted last, one mark per hover target, so the topmost
primitive under the pointer owns the single tooltip.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

import altair as alt
import pandas as pd

from core.pipeline import ChartConfig, ChartRender, Dimensions, render_chart
from core.tooltip import HoverController, mount_tooltip

alt.data_transformers.disable_max_rows()

TOOLTIP_FIELDS = [alt.Tooltip("title:N", title=" "), alt.Tooltip("key:N", title="Key"), alt.Tooltip("value:N", title="Value")]


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _px(field: str) -> Dict[str, Any]:
    return {"field": field, "type": "quantitative", "scale": None, "axis": None}


def _xy(**extra: Any) -> Dict[str, Any]:
    enc = {"x": alt.X(**_px("x")), "y": alt.Y(**_px("y"))}
    enc.update(extra)
    return enc


def _line_layers(render: ChartRender, ox: float, oy: float) -> List[alt.Chart]:
    rows = []
    for s_idx, series in enumerate(render.lines):
        segment = 0
        for order, p in enumerate(series.points):
            if not p.defined:
                segment += 1
                continue
            rows.append(
                {
                    "series": f"{s_idx}:{series.name}",
                    "segment": f"{s_idx}:{segment}",
                    "order": order,
                    "x": p.x + ox,
                    "y": p.y + oy,
                    "color": series.color,
                    "dashed": series.dashed,
                }
            )
    if not rows:
        return []
    df = pd.DataFrame(rows)
    layers = []
    solid = df[~df["dashed"]]
    dashed = df[df["dashed"]]
    if not dashed.empty:
        layers.append(
            alt.Chart(dashed)
            .mark_line(strokeDash=[4, 4], strokeWidth=2)
            .encode(**_xy(color=alt.Color("color:N", scale=None), detail="segment:N", order="order:Q"))
        )
    if not solid.empty:
        layers.append(
            alt.Chart(solid)
            .mark_line(strokeWidth=2)
            .encode(**_xy(color=alt.Color("color:N", scale=None), detail="segment:N", order="order:Q"))
        )
        layers.append(
            alt.Chart(solid)
            .mark_circle(size=50, opacity=1)
            .encode(**_xy(color=alt.Color("color:N", scale=None)))
        )
    return layers


def _rect_layers(render: ChartRender, ox: float, oy: float) -> List[alt.Chart]:
    if not render.rects:
        return []
    df = pd.DataFrame(
        [
            {
                "x": r.x + ox,
                "x2": r.x + r.width + ox,
                "y": r.y + oy,
                "y2": r.y + r.height + oy,
                "color": r.fill,
                "opacity": r.opacity,
            }
            for r in render.rects
        ]
    )
    layers = [
        alt.Chart(df)
        .mark_rect()
        .encode(
            **_xy(
                x2="x2",
                y2="y2",
                color=alt.Color("color:N", scale=None),
                opacity=alt.Opacity("opacity:Q", scale=None),
            )
        )
    ]
    if render.tiles:
        labels = pd.DataFrame(
            [
                {
                    "x": (t.x0 + t.x1) / 2 + ox,
                    "y": (t.y0 + t.y1) / 2 + oy,
                    "name": str(t.name),
                    "rank": str(t.rank),
                    "size": max(6.0, min(12.0, t.width / 6)),
                }
                for t in render.tiles
            ]
        )
        layers.append(
            alt.Chart(labels).mark_text(color="white", dy=-6).encode(**_xy(text="name:N", size=alt.Size("size:Q", scale=None)))
        )
        layers.append(alt.Chart(labels).mark_text(color="white", dy=8, fontSize=10).encode(**_xy(text="rank:N")))
    return layers


def _radial_layers(render: ChartRender, ox: float, oy: float) -> List[alt.Chart]:
    layers: List[alt.Chart] = []
    spokes = render.axes.get("spokes", [])
    if spokes:
        spoke_df = pd.DataFrame(
            [{"x": ox, "y": oy, "x2": s["x"] + ox, "y2": s["y"] + oy, "label": s["label"]} for s in spokes]
        )
        layers.append(alt.Chart(spoke_df).mark_rule(color="#cccccc").encode(**_xy(x2="x2", y2="y2")))
        layers.append(
            alt.Chart(spoke_df.assign(x=spoke_df["x2"] * 1.0, y=spoke_df["y2"] * 1.0))
            .mark_text(fontSize=10, color="#555555")
            .encode(**_xy(text="label:N"))
        )
    rows = []
    for s_idx, polygon in enumerate(render.polygons):
        for order, v in enumerate(polygon.vertices):
            rows.append({"series": str(s_idx), "order": order, "x": v.x + ox, "y": v.y + oy, "color": polygon.color})
    if rows:
        df = pd.DataFrame(rows)
        layers.append(
            alt.Chart(df)
            .mark_line(strokeWidth=3)
            .encode(**_xy(color=alt.Color("color:N", scale=None), detail="series:N", order="order:Q"))
        )
        layers.append(
            alt.Chart(df)
            .mark_circle(size=50, stroke="white", strokeWidth=1.5, opacity=1)
            .encode(**_xy(color=alt.Color("color:N", scale=None)))
        )
    return layers


def _point_layers(render: ChartRender, ox: float, oy: float) -> List[alt.Chart]:
    if not render.points:
        return []
    df = pd.DataFrame([{"x": p.x + ox, "y": p.y + oy, "color": p.color} for p in render.points])
    return [alt.Chart(df).mark_circle(size=80, opacity=0.7).encode(**_xy(color=alt.Color("color:N", scale=None)))]


def _axis_layers(render: ChartRender, ox: float, oy: float) -> List[alt.Chart]:
    layers: List[alt.Chart] = []
    bottom = render.height - render.margin.bottom
    x_ticks = [t for t in render.axes.get("x", []) if t.get("pos") is not None]
    y_ticks = [t for t in render.axes.get("y", []) if t.get("pos") is not None]
    if x_ticks:
        df = pd.DataFrame([{"x": t["pos"] + ox, "y": bottom + 14, "label": t["label"]} for t in x_ticks])
        layers.append(alt.Chart(df).mark_text(fontSize=10).encode(**_xy(text="label:N")))
    if y_ticks:
        df = pd.DataFrame([{"x": ox - 6, "y": t["pos"] + oy, "label": t["label"]} for t in y_ticks])
        layers.append(alt.Chart(df).mark_text(fontSize=10, align="right", baseline="middle").encode(**_xy(text="label:N")))
    if x_ticks or y_ticks:
        frame = pd.DataFrame(
            [
                {"x": ox, "y": bottom, "x2": render.width - render.margin.right, "y2": bottom},
                {"x": ox, "y": oy, "x2": ox, "y2": bottom},
            ]
        )
        layers.append(alt.Chart(frame).mark_rule(color="#888888").encode(**_xy(x2="x2", y2="y2")))
    return layers


def _legend_layers(render: ChartRender) -> List[alt.Chart]:
    if not render.legend:
        return []
    x = render.width - render.margin.right - 110
    df = pd.DataFrame(
        [{"x": x, "y": 10 + i * 18, "label": item["label"], "color": item["color"]} for i, item in enumerate(render.legend)]
    )
    return [
        alt.Chart(df).mark_square(size=100, opacity=1).encode(**_xy(color=alt.Color("color:N", scale=None))),
        alt.Chart(df.assign(x=df["x"] + 10)).mark_text(align="left", baseline="middle", fontSize=11).encode(**_xy(text="label:N")),
    ]


def _hover_layers(render: ChartRender, ox: float, oy: float) -> List[alt.Chart]:
    rects, circles = [], []
    for target in render.hover_targets:
        content = {k: target.content.get(k, "") for k in ("title", "key", "value")}
        if target.shape == "rect":
            x, y, w, h = target.bounds
            rects.append({"x": x + ox, "y": y + oy, "x2": x + w + ox, "y2": y + h + oy, **content})
        elif target.shape == "circle":
            cx, cy, r = target.bounds
            circles.append({"x": cx + ox, "y": cy + oy, "size": 3.14159 * (r + 2) ** 2, **content})
    layers: List[alt.Chart] = []
    if rects:
        layers.append(
            alt.Chart(pd.DataFrame(rects))
            .mark_rect(opacity=0.001)
            .encode(**_xy(x2="x2", y2="y2", tooltip=TOOLTIP_FIELDS))
        )
    if circles:
        layers.append(
            alt.Chart(pd.DataFrame(circles))
            .mark_circle(opacity=0.001)
            .encode(**_xy(size=alt.Size("size:Q", scale=None), tooltip=TOOLTIP_FIELDS))
        )
    return layers


def render_to_altair(render: ChartRender) -> alt.TopLevelMixin:
    """Issue the draw calls for ``render``; an empty render draws nothing."""
    size = {"width": render.width, "height": render.height}
    if render.is_empty:
        return alt.Chart(pd.DataFrame({"x": [], "y": []})).mark_point().encode(**_xy()).properties(**size)

    ox, oy = render.origin
    layers: List[alt.Chart] = []
    if render.family == "radial":
        layers += _radial_layers(render, ox, oy)
    else:
        layers += _axis_layers(render, ox, oy)
        layers += _rect_layers(render, ox, oy)
        layers += _line_layers(render, ox, oy)
        layers += _point_layers(render, ox, oy)
    layers += _legend_layers(render)
    layers += _hover_layers(render, ox, oy)
    return alt.layer(*layers).properties(**size).configure_view(strokeWidth=0)


@contextmanager
def mounted_chart(
    config: ChartConfig, records: pd.DataFrame, dims: Optional[Dimensions] = None
) -> Iterator[Tuple[ChartRender, HoverController]]:
    """Render one chart and own its tooltip for as long as the chart is shown.

    The tooltip is released when the block exits, whether or not drawing
    succeeded.
    """
    render = render_chart(config, records, dims)
    with mount_tooltip(config.chart_id) as tooltip:
        yield render, HoverController(tooltip, render.hover_targets)


def chart_payload(config: ChartConfig, records: pd.DataFrame, dims: Optional[Dimensions] = None) -> Dict[str, Any]:
    with mounted_chart(config, records, dims) as (render, controller):
        return {
            "title": config.title,
            "family": config.family,
            "is_empty": render.is_empty,
            "render": render.to_dict(),
            "tooltip": controller.tooltip.to_dict(),
            "vega": to_vega_spec(render_to_altair(render)),
        }


def hover_at(
    config: ChartConfig, records: pd.DataFrame, x: float, y: float, dims: Optional[Dimensions] = None
) -> Dict[str, Any]:
    """Tooltip state for a pointer at surface coordinates ``(x, y)``."""
    with mounted_chart(config, records, dims) as (render, controller):
        ox, oy = render.origin
        controller.pointer_move(x - ox, y - oy)
        return controller.tooltip.to_dict()
