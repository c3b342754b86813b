from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from core.aggregate import AggregateResult, Fallback, Reducer, aggregate, align_series, distinct_keys
from core.geometry import (
    LineSeries,
    RadialSeries,
    Rect,
    ScatterPoint,
    bar_rects,
    grouped_bar_rects,
    histogram_rects,
    line_series,
    radial_polygon,
    scatter_points,
)
from core.scales import (
    CATEGORY10,
    DEFAULT_COLOR,
    TABLEAU10,
    BandScale,
    ColorScale,
    InvalidDomainError,
    OrdinalColors,
    build_scale,
    positive_only,
    shared_extent,
)
from core.tooltip import HoverTarget, format_tooltip
from core.treemap import TreemapTile, leaves_from_results, treemap


logger = logging.getLogger(__name__)

COUNTRY_COLORS = {"China": "#e63946", "Japan": "#345d7e"}
TREEMAP_COLORS = ("#e63946", "#6b97c9", "#345d7e")
AVERAGE_COLOR = "lightgray"
FAMILIES = ("line", "bar", "grouped_bar", "radial", "treemap", "scatter", "histogram")

# Line charts break at missing points; every solid shape draws missing as 0.
NULL_POLICY: Dict[str, Fallback] = {
    "line": "null",
    "bar": "zero",
    "grouped_bar": "zero",
    "radial": "zero",
    "treemap": "zero",
    "scatter": "zero",
    "histogram": "zero",
}


@dataclass(frozen=True)
class Margin:
    top: float = 30
    right: float = 40
    bottom: float = 50
    left: float = 50


DEFAULT_MARGIN = Margin()


@dataclass(frozen=True)
class Dimensions:
    width: float = 600
    height: float = 400
    margin: Margin = DEFAULT_MARGIN

    @property
    def bounds_width(self) -> float:
        return max(0.0, self.width - self.margin.left - self.margin.right)

    @property
    def bounds_height(self) -> float:
        return max(0.0, self.height - self.margin.top - self.margin.bottom)


@dataclass(frozen=True)
class ChartConfig:
    """Everything that distinguishes one dashboard chart from another."""

    chart_id: str
    family: str
    title: str = ""
    value: str = ""
    reducer: Reducer = "mean"
    null_policy: Optional[Fallback] = None
    group_by: str = "year"
    series_by: Optional[str] = None
    series: Tuple[str, ...] = ()
    values: Tuple[str, ...] = ()
    labels: Mapping[str, str] = field(default_factory=dict)
    where: Mapping[str, Any] = field(default_factory=dict)
    colors: Mapping[str, str] = field(default_factory=lambda: dict(COUNTRY_COLORS))
    default_color: str = DEFAULT_COLOR
    scale_factor: float = 1.0
    y_domain: Optional[Tuple[float, float]] = None
    x_field: str = ""
    y_field: str = ""
    x_scale: str = "linear"
    category_field: str = "country"
    axes: Tuple[str, ...] = ()
    inner_radius: float = 20.0
    radial_margin: float = 30.0
    padding: float = 0.2
    sub_padding: float = 0.05
    bar_width: float = 20.0
    treemap_padding: float = 1.0
    average_line: bool = False
    x_label: str = ""
    y_label: str = ""
    value_format: str = ",.2f"
    value_prefix: str = ""
    value_suffix: str = ""

    @property
    def fallback(self) -> Fallback:
        if self.null_policy is not None:
            return self.null_policy
        return NULL_POLICY.get(self.family, "zero")

    def label(self, name: Any) -> str:
        return self.labels.get(str(name), str(name))


@dataclass
class ChartRender:
    chart_id: str
    family: str
    title: str
    width: float
    height: float
    margin: Margin
    lines: List[LineSeries] = field(default_factory=list)
    rects: List[Rect] = field(default_factory=list)
    polygons: List[RadialSeries] = field(default_factory=list)
    points: List[ScatterPoint] = field(default_factory=list)
    tiles: List[TreemapTile] = field(default_factory=list)
    hover_targets: List[HoverTarget] = field(default_factory=list)
    scales: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    axes: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    legend: List[Dict[str, str]] = field(default_factory=list)
    x_label: str = ""
    y_label: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.lines or self.rects or self.polygons or self.points or self.tiles)

    @property
    def origin(self) -> Tuple[float, float]:
        """Where bounds coordinates start on the drawing surface."""
        if self.family == "radial":
            return self.width / 2, self.height / 2
        return self.margin.left, self.margin.top

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["is_empty"] = self.is_empty
        payload["origin"] = list(self.origin)
        return payload


def short_number(value: float) -> str:
    v = float(value)
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "k")):
        if abs(v) >= threshold:
            return f"{v / threshold:.3g}{suffix}"
    return f"{v:.3g}"


def _tick_label(value: Any) -> str:
    if isinstance(value, datetime):
        return str(value.year)
    return short_number(value)


def _axis(scale: Any, count: int = 6) -> List[Dict[str, Any]]:
    if isinstance(scale, BandScale):
        return [{"pos": scale.center(label), "label": str(label)} for label in scale.domain]
    return [{"pos": scale(t), "label": _tick_label(t)} for t in scale.ticks(count)]


def _empty(config: ChartConfig, dims: Dimensions) -> ChartRender:
    return ChartRender(
        chart_id=config.chart_id,
        family=config.family,
        title=config.title,
        width=dims.width,
        height=dims.height,
        margin=dims.margin,
        x_label=config.x_label,
        y_label=config.y_label,
    )


def _scaled(results: List[AggregateResult], factor: float) -> List[AggregateResult]:
    if factor == 1.0:
        return results
    return [AggregateResult(r.key, None if r.value is None else r.value / factor, r.count) for r in results]


def _apply_where(df: pd.DataFrame, where: Mapping[str, Any]) -> pd.DataFrame:
    for col, expected in where.items():
        if col not in df.columns:
            return df.iloc[0:0]
        df = df[df[col] == expected]
    return df


def _series_names(df: pd.DataFrame, config: ChartConfig) -> List[Any]:
    if config.series:
        return list(config.series)
    if config.series_by and config.series_by in df.columns:
        return distinct_keys(df, config.series_by)
    return []


def _tooltip(config: ChartConfig, label: Any, key: Any, value: Any, key_label: str = "") -> Dict[str, str]:
    return format_tooltip(
        config.label(label),
        key,
        value,
        key_label=key_label or config.x_label or "Key",
        value_label=config.y_label or "Value",
        fmt=config.value_format,
        prefix=config.value_prefix,
        suffix=config.value_suffix,
    )


# ---------------- Line ----------------
def _render_line(config: ChartConfig, df: pd.DataFrame, dims: Dimensions) -> ChartRender:
    render = _empty(config, dims)
    per_series: Dict[str, List[AggregateResult]] = {}
    if config.values:
        for value_field in config.values:
            per_series[value_field] = _scaled(
                aggregate(df, config.group_by, value_field, config.reducer, fallback=config.fallback),
                config.scale_factor,
            )
    elif config.series_by:
        for name in _series_names(df, config):
            subset = df[df[config.series_by] == name]
            per_series[name] = _scaled(
                aggregate(subset, config.group_by, config.value, config.reducer, fallback=config.fallback),
                config.scale_factor,
            )
    else:
        per_series[config.value] = _scaled(
            aggregate(df, config.group_by, config.value, config.reducer, fallback=config.fallback),
            config.scale_factor,
        )

    average: List[AggregateResult] = []
    if config.average_line:
        average = _scaled(aggregate(df, config.group_by, config.value, config.reducer, fallback="zero"), config.scale_factor)

    all_keys = sorted({r.key for results in per_series.values() for r in results} | {r.key for r in average})
    values = [r.value for results in per_series.values() for r in results]
    if config.y_domain is not None:
        y_extent: Optional[Tuple[float, float]] = config.y_domain
    else:
        y_extent = shared_extent(values, [r.value for r in average], include_zero=True)
    if not all_keys or y_extent is None or all(v is None for v in values):
        return render

    x_kind = "time" if config.group_by == "year" else "linear"
    x_scale = build_scale(x_kind, [all_keys[0], all_keys[-1]], [0, dims.bounds_width])
    y_scale = build_scale("linear", list(y_extent), [dims.bounds_height, 0])
    if config.y_domain is None:
        y_scale.nice()

    palette = OrdinalColors(per_series.keys(), TABLEAU10)
    if average:
        render.lines.append(line_series("Average", average, x_scale, y_scale, AVERAGE_COLOR, dashed=True))
    for name, results in per_series.items():
        if not results:
            continue
        color = config.colors.get(name) or palette(name)
        series = line_series(config.label(name), results, x_scale, y_scale, color)
        render.lines.append(series)
        render.legend.append({"label": config.label(name), "color": color})
        for p in series.points:
            if p.defined:
                render.hover_targets.append(
                    HoverTarget("circle", (p.x, p.y, 4.0), _tooltip(config, name, p.key, p.value))
                )

    render.scales = {"x": x_scale.to_dict(), "y": y_scale.to_dict()}
    render.axes = {"x": _axis(x_scale), "y": _axis(y_scale)}
    return render


# ---------------- Bars ----------------
def _render_bar(config: ChartConfig, df: pd.DataFrame, dims: Dimensions) -> ChartRender:
    render = _empty(config, dims)
    results = _scaled(aggregate(df, config.group_by, config.value, config.reducer, fallback=config.fallback), config.scale_factor)
    if not results:
        return render
    x_scale = build_scale("band", [r.key for r in results], [0, dims.bounds_width], padding=config.padding)
    extent = config.y_domain or shared_extent([r.value for r in results], include_zero=True) or (0.0, 1.0)
    if extent[0] == extent[1]:
        extent = (extent[0], extent[0] + 1.0)
    y_scale = build_scale("linear", list(extent), [dims.bounds_height, 0])
    colors = OrdinalColors([r.key for r in results], CATEGORY10)
    render.rects = bar_rects(results, x_scale, y_scale, lambda key: config.colors.get(str(key)) or colors(key))
    render.hover_targets = [
        HoverTarget("rect", (r.x, r.y, r.width, r.height), _tooltip(config, config.title or config.value, r.key, r.value))
        for r in render.rects
        if r.opacity > 0
    ]
    render.scales = {"x": x_scale.to_dict(), "y": y_scale.to_dict()}
    render.axes = {"x": _axis(x_scale), "y": _axis(y_scale)}
    return render


def _render_grouped_bar(config: ChartConfig, df: pd.DataFrame, dims: Dimensions) -> ChartRender:
    render = _empty(config, dims)
    series = _series_names(df, config)
    if not series or config.series_by is None:
        return render
    categories = distinct_keys(df, config.group_by)
    per_series = {
        name: _scaled(
            aggregate(df[df[config.series_by] == name], config.group_by, config.value, config.reducer, fallback=config.fallback),
            config.scale_factor,
        )
        for name in series
    }
    aligned = align_series(per_series, categories, fallback=config.fallback)
    extent = config.y_domain or shared_extent(*(aligned[name] for name in series), include_zero=True) or (0.0, 1.0)
    if extent[0] == extent[1]:
        extent = (extent[0], extent[0] + 1.0)

    x_scale = build_scale("band", categories, [0, dims.bounds_width], padding=config.padding)
    sub_scale = build_scale("band", series, [0, x_scale.bandwidth], padding=config.sub_padding)
    y_scale = build_scale("linear", list(extent), [dims.bounds_height, 0])
    colors = {name: config.colors.get(name, config.default_color) for name in series}
    render.rects = grouped_bar_rects(aligned, series, x_scale, sub_scale, y_scale, colors)
    render.hover_targets = [
        HoverTarget("rect", (r.x, r.y, r.width, r.height), _tooltip(config, r.series, r.key, r.value))
        for r in render.rects
        if r.opacity > 0
    ]
    render.legend = [{"label": config.label(name), "color": colors[name]} for name in series]
    render.scales = {"x": x_scale.to_dict(), "sub": sub_scale.to_dict(), "y": y_scale.to_dict()}
    render.axes = {"x": _axis(x_scale), "y": _axis(y_scale)}
    return render


def _render_histogram(config: ChartConfig, df: pd.DataFrame, dims: Dimensions) -> ChartRender:
    render = _empty(config, dims)
    label_field = config.group_by
    xs = aggregate(df, label_field, config.x_field, "sum", fallback=config.fallback)
    ys = aggregate(df, label_field, config.y_field, "sum", fallback=config.fallback)
    if not xs:
        return render
    frame = align_series({config.x_field: xs, config.y_field: ys}, fallback=config.fallback).rename(columns={"key": label_field})
    x_extent = shared_extent(frame[config.x_field])
    y_extent = shared_extent(frame[config.y_field], include_zero=True)
    if x_extent is None or y_extent is None:
        return render
    x_scale = build_scale("linear", list(x_extent), [0, dims.bounds_width]).nice()
    y_scale = build_scale("linear", list(y_extent), [dims.bounds_height, 0]).nice()
    colors = OrdinalColors(frame[label_field], CATEGORY10)
    render.rects = histogram_rects(frame, label_field, config.x_field, config.y_field, x_scale, y_scale, colors, config.bar_width)
    lookup = frame.set_index(label_field)[config.x_field].to_dict()
    render.hover_targets = [
        HoverTarget(
            "rect",
            (r.x, r.y, r.width, r.height),
            _tooltip(config, r.key, short_number(lookup.get(r.key, 0.0)), r.value, key_label=config.x_label),
        )
        for r in render.rects
    ]
    render.legend = [{"label": str(name), "color": colors(name)} for name in frame[label_field]]
    render.scales = {"x": x_scale.to_dict(), "y": y_scale.to_dict()}
    render.axes = {"x": _axis(x_scale), "y": _axis(y_scale)}
    return render


# ---------------- Radial ----------------
def _render_radial(config: ChartConfig, df: pd.DataFrame, dims: Dimensions) -> ChartRender:
    render = _empty(config, dims)
    series = _series_names(df, config)
    axes = list(config.axes) or distinct_keys(df, config.group_by)
    if not series or not axes or config.series_by is None:
        return render

    per_series = {
        name: aggregate(df[df[config.series_by] == name], config.group_by, config.value, config.reducer, fallback=config.fallback)
        for name in series
    }
    aligned = align_series(per_series, axes, fallback=config.fallback).set_index("key")
    extent = shared_extent(*(aligned[name] for name in series), include_zero=True)
    if extent is None or extent[1] <= 0:
        return render

    outer = max(config.inner_radius, min(dims.width, dims.height) / 2 - config.radial_margin)
    angle_scale = build_scale("band", axes, [0, 2 * math.pi])
    radius_scales = {axis: build_scale("radial", [0, extent[1]], [config.inner_radius, outer]) for axis in axes}
    for name in series:
        values = {axis: (None if pd.isna(v) else float(v)) for axis, v in aligned[name].items()}
        polygon = radial_polygon(
            config.label(name),
            values,
            axes,
            angle_scale,
            radius_scales,
            config.colors.get(name, config.default_color),
        )
        if polygon is None:
            continue
        render.polygons.append(polygon)
        render.legend.append({"label": polygon.name, "color": polygon.color})
        for vertex in polygon.vertices[:-1]:
            render.hover_targets.append(
                HoverTarget("circle", (vertex.x, vertex.y, 4.0), _tooltip(config, name, vertex.axis, vertex.value))
            )

    render.scales = {"angle": angle_scale.to_dict(), "radius": radius_scales[axes[0]].to_dict()}
    render.axes = {
        "spokes": [
            {
                "label": str(axis),
                "angle": angle_scale(axis),
                "x": outer * math.cos(angle_scale(axis) - math.pi / 2),
                "y": outer * math.sin(angle_scale(axis) - math.pi / 2),
            }
            for axis in axes
        ],
        "rings": [{"radius": radius_scales[axes[0]](t), "label": short_number(t)} for t in radius_scales[axes[0]].ticks(4)],
    }
    return render


# ---------------- Treemap ----------------
def _render_treemap(config: ChartConfig, df: pd.DataFrame, dims: Dimensions) -> ChartRender:
    render = _empty(config, dims)
    results = _scaled(aggregate(df, config.group_by, config.value, "sum", fallback=config.fallback), config.scale_factor)
    tiles = treemap(leaves_from_results(results), dims.bounds_width, dims.bounds_height, config.treemap_padding)
    if not tiles:
        return render
    max_value = max(t.value for t in tiles)
    color = ColorScale([0, max_value * 0.25, max_value], TREEMAP_COLORS)
    render.tiles = tiles
    render.rects = [
        Rect(x=t.x0, y=t.y0, width=t.width, height=t.height, fill=color(t.value), key=t.name, value=t.value, opacity=0.8)
        for t in tiles
    ]
    render.hover_targets = [
        HoverTarget("rect", (r.x, r.y, r.width, r.height), _tooltip(config, r.key, r.key, r.value, key_label="Sector"))
        for r in render.rects
    ]
    return render


# ---------------- Scatter ----------------
def _render_scatter(config: ChartConfig, df: pd.DataFrame, dims: Dimensions) -> ChartRender:
    render = _empty(config, dims)
    if config.x_field not in df.columns or config.y_field not in df.columns:
        return render
    frame = df.copy()
    frame[config.x_field] = pd.to_numeric(frame[config.x_field], errors="coerce")
    frame[config.y_field] = pd.to_numeric(frame[config.y_field], errors="coerce").fillna(0.0)
    xs = positive_only(frame[config.x_field]) if config.x_scale == "log" else list(frame[config.x_field].dropna())
    x_extent = shared_extent(xs)
    y_extent = shared_extent(frame[config.y_field], include_zero=True)
    if x_extent is None or y_extent is None:
        return render
    try:
        x_scale = build_scale(config.x_scale, list(x_extent), [0, dims.bounds_width])
    except InvalidDomainError:
        logger.debug("Chart %s has no positive values for its log axis", config.chart_id)
        return render
    y_scale = build_scale("linear", list(y_extent), [dims.bounds_height, 0])
    render.points = scatter_points(
        frame, config.x_field, config.y_field, config.category_field, x_scale, y_scale, config.colors, config.default_color
    )
    render.hover_targets = [
        HoverTarget(
            "circle",
            (p.x, p.y, 5.0),
            _tooltip(config, p.category, short_number(p.datum.get(config.x_field, 0.0)), p.datum.get(config.y_field), key_label=config.x_label),
        )
        for p in render.points
    ]
    seen = []
    for p in render.points:
        if p.category not in seen:
            seen.append(p.category)
    render.legend = [{"label": str(c), "color": config.colors.get(c, config.default_color)} for c in seen]
    render.scales = {"x": x_scale.to_dict(), "y": y_scale.to_dict()}
    render.axes = {"x": _axis(x_scale), "y": _axis(y_scale)}
    return render


_RENDERERS: Dict[str, Callable[[ChartConfig, pd.DataFrame, Dimensions], ChartRender]] = {
    "line": _render_line,
    "bar": _render_bar,
    "grouped_bar": _render_grouped_bar,
    "histogram": _render_histogram,
    "radial": _render_radial,
    "treemap": _render_treemap,
    "scatter": _render_scatter,
}


def render_chart(config: ChartConfig, records: Optional[pd.DataFrame], dims: Optional[Dimensions] = None) -> ChartRender:
    """Aggregate -> scale -> geometry for one chart.

    Re-run on every filter or size change; nothing is cached between calls.
    Empty input produces an empty render (the surface is cleared, nothing drawn).
    """
    renderer = _RENDERERS.get(config.family)
    if renderer is None:
        raise ValueError(f"Unknown chart family: {config.family!r}")
    dims = dims or Dimensions()
    if records is None or records.empty:
        return _empty(config, dims)
    df = _apply_where(records, config.where)
    if df.empty:
        return _empty(config, dims)
    render = renderer(config, df, dims)
    logger.debug(
        "Rendered %s (%s): %d rows -> %d primitives",
        config.chart_id,
        config.family,
        len(df),
        len(render.lines) + len(render.rects) + len(render.polygons) + len(render.points),
    )
    return render
