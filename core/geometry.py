from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from core.aggregate import AggregateResult
from core.scales import DEFAULT_COLOR, BandScale, LinearScale, RadialScale, categorical_color


@dataclass(frozen=True)
class LinePoint:
    x: float
    y: Optional[float]
    key: Any
    value: Optional[float]

    @property
    def defined(self) -> bool:
        return self.y is not None


@dataclass(frozen=True)
class LineSeries:
    name: str
    color: str
    points: List[LinePoint]
    path: str
    dashed: bool = False


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    fill: str
    key: Any = None
    series: Optional[str] = None
    value: Optional[float] = None
    opacity: float = 1.0

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class RadialVertex:
    axis: str
    angle: float
    radius: float
    value: Optional[float]

    @property
    def x(self) -> float:
        return self.radius * math.cos(self.angle - math.pi / 2)

    @property
    def y(self) -> float:
        return self.radius * math.sin(self.angle - math.pi / 2)


@dataclass(frozen=True)
class RadialSeries:
    name: str
    color: str
    vertices: List[RadialVertex]
    path: str


@dataclass(frozen=True)
class ScatterPoint:
    x: float
    y: float
    color: str
    category: Any
    datum: Dict[str, Any] = field(default_factory=dict)


def _fmt(value: float) -> str:
    out = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if out == "-0" else out


# ---------------- Line / area ----------------
def line_points(
    results: Sequence[Union[AggregateResult, tuple]],
    x_scale: LinearScale,
    y_scale: LinearScale,
) -> List[LinePoint]:
    """Map (key, value) pairs to pixels, ordered by key.

    A missing value yields an undefined point; the line is broken there.
    """
    pairs = [(r.key, r.value) if isinstance(r, AggregateResult) else (r[0], r[1]) for r in results]
    try:
        pairs.sort(key=lambda p: p[0])
    except TypeError:
        pass
    points: List[LinePoint] = []
    for key, value in pairs:
        x = x_scale(key)
        if x is None:
            continue
        y = y_scale(value) if value is not None else None
        points.append(LinePoint(x=x, y=y, key=key, value=value if y is not None else None))
    return points


def line_segments(points: Sequence[LinePoint]) -> List[List[LinePoint]]:
    segments: List[List[LinePoint]] = []
    current: List[LinePoint] = []
    for p in points:
        if p.defined:
            current.append(p)
        elif current:
            segments.append(current)
            current = []
    if current:
        segments.append(current)
    return segments


def line_path(points: Sequence[LinePoint]) -> str:
    parts: List[str] = []
    for segment in line_segments(points):
        head, *tail = segment
        parts.append(f"M{_fmt(head.x)},{_fmt(head.y)}")
        parts.extend(f"L{_fmt(p.x)},{_fmt(p.y)}" for p in tail)
        if not tail:
            parts.append("Z")
    return "".join(parts)


def line_series(
    name: str,
    results: Sequence[Union[AggregateResult, tuple]],
    x_scale: LinearScale,
    y_scale: LinearScale,
    color: str = DEFAULT_COLOR,
    dashed: bool = False,
) -> LineSeries:
    points = line_points(results, x_scale, y_scale)
    return LineSeries(name=name, color=color, points=points, path=line_path(points), dashed=dashed)


# ---------------- Bars ----------------
def _bar(x: float, width: float, value: Optional[float], y_scale: LinearScale, **attrs: Any) -> Rect:
    v = 0.0 if value is None else float(value)
    baseline = y_scale(0.0)
    top = y_scale(v)
    if baseline is None or top is None:
        baseline = top = y_scale.range[0]
    return Rect(
        x=x,
        y=min(top, baseline),
        width=width,
        height=abs(baseline - top),
        value=v,
        opacity=0.0 if v == 0 else 1.0,
        **attrs,
    )


def bar_rects(
    results: Sequence[AggregateResult],
    x_scale: BandScale,
    y_scale: LinearScale,
    color: Union[str, Callable[[Any], str]] = DEFAULT_COLOR,
) -> List[Rect]:
    """One bar per result. Zero bars stay in place but are transparent."""
    rects: List[Rect] = []
    for r in results:
        x = x_scale(r.key)
        if x is None:
            continue
        fill = color(r.key) if callable(color) else color
        rects.append(_bar(x, x_scale.bandwidth, r.value, y_scale, fill=fill, key=r.key))
    return rects


def grouped_bar_rects(
    aligned: pd.DataFrame,
    series: Sequence[str],
    x_scale: BandScale,
    sub_scale: BandScale,
    y_scale: LinearScale,
    colors: Mapping[str, str],
) -> List[Rect]:
    """Nested bars: ``aligned`` has a ``key`` column plus one column per series."""
    rects: List[Rect] = []
    if aligned is None or aligned.empty:
        return rects
    for row in aligned.to_dict(orient="records"):
        x0 = x_scale(row["key"])
        if x0 is None:
            continue
        for name in series:
            dx = sub_scale(name)
            if dx is None:
                continue
            value = row.get(name)
            value = None if value is None or pd.isna(value) else float(value)
            rects.append(
                _bar(
                    x0 + dx,
                    sub_scale.bandwidth,
                    value,
                    y_scale,
                    fill=categorical_color(name, dict(colors)),
                    key=row["key"],
                    series=name,
                )
            )
    return rects


def histogram_rects(
    frame: pd.DataFrame,
    label_field: str,
    x_field: str,
    y_field: str,
    x_scale: LinearScale,
    y_scale: LinearScale,
    colors: Callable[[Any], str],
    bar_width: float = 20.0,
) -> List[Rect]:
    """Bars placed at ``x(x_field)`` with a fixed width and height from ``y_field``."""
    rects: List[Rect] = []
    if frame is None or frame.empty:
        return rects
    for row in frame.to_dict(orient="records"):
        x = x_scale(row.get(x_field))
        if x is None:
            continue
        rects.append(
            _bar(x, bar_width, row.get(y_field), y_scale, fill=colors(row[label_field]), key=row[label_field])
        )
    return rects


# ---------------- Radial / spider ----------------
def has_valid_values(values: Mapping[str, Optional[float]]) -> bool:
    return any(v is not None and not (isinstance(v, float) and math.isnan(v)) and v != 0 for v in values.values())


def radial_path(vertices: Sequence[RadialVertex]) -> str:
    if not vertices:
        return ""
    head, *tail = vertices
    return f"M{_fmt(head.x)},{_fmt(head.y)}" + "".join(f"L{_fmt(v.x)},{_fmt(v.y)}" for v in tail)


def radial_polygon(
    name: str,
    values: Mapping[str, Optional[float]],
    axes: Sequence[str],
    angle_scale: BandScale,
    radius_scales: Union[RadialScale, Mapping[str, RadialScale]],
    color: str = DEFAULT_COLOR,
) -> Optional[RadialSeries]:
    """Closed polygon with one vertex per axis plus the repeated first vertex.

    Returns ``None`` when the series has no non-zero value on any axis.
    """
    if not axes or not has_valid_values(values):
        return None
    vertices: List[RadialVertex] = []
    for axis in axes:
        scale = radius_scales[axis] if isinstance(radius_scales, Mapping) else radius_scales
        value = values.get(axis)
        if value is not None and isinstance(value, float) and math.isnan(value):
            value = None
        angle = angle_scale(axis) or 0.0
        radius = scale(value or 0.0)
        vertices.append(RadialVertex(axis=axis, angle=angle, radius=radius or scale.range[0], value=value))
    vertices.append(vertices[0])
    return RadialSeries(name=name, color=color, vertices=vertices, path=radial_path(vertices))


# ---------------- Scatter ----------------
def scatter_points(
    frame: pd.DataFrame,
    x_field: str,
    y_field: str,
    category_field: str,
    x_scale: LinearScale,
    y_scale: LinearScale,
    colors: Mapping[Any, str],
    default_color: str = DEFAULT_COLOR,
) -> List[ScatterPoint]:
    """One point per record; records a scale cannot place (e.g. log of 0) are skipped."""
    points: List[ScatterPoint] = []
    if frame is None or frame.empty:
        return points
    lookup = dict(colors)
    for row in frame.to_dict(orient="records"):
        x = x_scale(row.get(x_field))
        y = y_scale(row.get(y_field))
        if x is None or y is None:
            continue
        category = row.get(category_field)
        points.append(
            ScatterPoint(
                x=x,
                y=y,
                color=categorical_color(category, lookup, default_color),
                category=category,
                datum={k: row.get(k) for k in (category_field, x_field, y_field, "year", "tech_sector") if k in row},
            )
        )
    return points
