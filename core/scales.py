from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#3c82f6"

# d3.schemeTableau10 / d3.schemeCategory10
TABLEAU10 = [
    "#4e79a7", "#f28e2c", "#e15759", "#76b7b2", "#59a14f",
    "#edc949", "#af7aa1", "#ff9da7", "#9c755f", "#bab0ab",
]
CATEGORY10 = [
    "#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd",
    "#8c564b", "#e377c2", "#7f7f7f", "#bcbd22", "#17becf",
]

SCALE_KINDS = ("linear", "log", "time", "band", "radial")


class InvalidDomainError(ValueError):
    """Raised when a scale cannot represent its domain (e.g. log of zero)."""


def _finite(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def tick_step(start: float, stop: float, count: int) -> float:
    step0 = abs(stop - start) / max(1, count)
    if step0 == 0:
        return 0.0
    step1 = 10 ** math.floor(math.log10(step0))
    error = step0 / step1
    if error >= math.sqrt(50):
        step1 *= 10
    elif error >= math.sqrt(10):
        step1 *= 5
    elif error >= math.sqrt(2):
        step1 *= 2
    return step1 if stop >= start else -step1


class LinearScale:
    kind = "linear"

    def __init__(self, domain: Sequence[float], range: Sequence[float], clamp: bool = False):
        self.domain: Tuple[float, float] = (float(domain[0]), float(domain[1]))
        self.range: Tuple[float, float] = (float(range[0]), float(range[1]))
        self.clamp = clamp

    def _normalize(self, x: float) -> float:
        d0, d1 = self.domain
        if d1 == d0:
            return 0.5
        t = (x - d0) / (d1 - d0)
        if self.clamp:
            t = min(1.0, max(0.0, t))
        return t

    def _transform(self, value: Any) -> Optional[float]:
        return _finite(value)

    def __call__(self, value: Any) -> Optional[float]:
        x = self._transform(value)
        if x is None:
            return None
        r0, r1 = self.range
        return r0 + self._normalize(x) * (r1 - r0)

    def ticks(self, count: int = 10) -> List[float]:
        d0, d1 = self.domain
        lo, hi = min(d0, d1), max(d0, d1)
        step = abs(tick_step(lo, hi, count))
        if step == 0:
            return [lo]
        first = math.ceil(lo / step)
        last = math.floor(hi / step)
        return [round(i * step, 12) for i in range(first, last + 1)]

    def nice(self, count: int = 10) -> "LinearScale":
        d0, d1 = self.domain
        lo, hi = min(d0, d1), max(d0, d1)
        for _ in range(2):
            step = abs(tick_step(lo, hi, count))
            if step == 0:
                break
            lo, hi = math.floor(lo / step) * step, math.ceil(hi / step) * step
        self.domain = (lo, hi) if d0 <= d1 else (hi, lo)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "domain": list(self.domain), "range": list(self.range)}


class LogScale(LinearScale):
    kind = "log"

    def __init__(self, domain: Sequence[float], range: Sequence[float], clamp: bool = False):
        lo, hi = _finite(domain[0]), _finite(domain[1])
        if lo is None or hi is None or lo <= 0 or hi <= 0:
            raise InvalidDomainError(f"Logarithmic domain must be strictly positive, got {list(domain)!r}")
        super().__init__(domain, range, clamp)
        self._log_domain = (math.log10(self.domain[0]), math.log10(self.domain[1]))

    def _normalize(self, x: float) -> float:
        d0, d1 = self._log_domain
        if d1 == d0:
            return 0.5
        t = (x - d0) / (d1 - d0)
        if self.clamp:
            t = min(1.0, max(0.0, t))
        return t

    def _transform(self, value: Any) -> Optional[float]:
        x = _finite(value)
        if x is None or x <= 0:
            return None
        return math.log10(x)

    def ticks(self, count: int = 10) -> List[float]:
        d0, d1 = sorted(self._log_domain)
        return [10.0 ** e for e in range(math.ceil(d0), math.floor(d1) + 1)]

    def nice(self, count: int = 10) -> "LogScale":
        d0, d1 = self.domain
        lo, hi = 10 ** math.floor(math.log10(min(d0, d1))), 10 ** math.ceil(math.log10(max(d0, d1)))
        self.domain = (lo, hi) if d0 <= d1 else (hi, lo)
        self._log_domain = (math.log10(self.domain[0]), math.log10(self.domain[1]))
        return self


def as_datetime(value: Any) -> Optional[datetime]:
    """Years (ints) become January 1st of that year."""
    if value is None:
        return None
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        return datetime(int(value), 1, 1)
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    return ts.to_pydatetime().replace(tzinfo=None)


class TimeScale(LinearScale):
    kind = "time"

    def __init__(self, domain: Sequence[Any], range: Sequence[float], clamp: bool = False):
        start, stop = as_datetime(domain[0]), as_datetime(domain[1])
        if start is None or stop is None:
            raise InvalidDomainError(f"Time domain must contain dates, got {list(domain)!r}")
        self.dates = (start, stop)
        super().__init__((self._seconds(start), self._seconds(stop)), range, clamp)

    @staticmethod
    def _seconds(value: datetime) -> float:
        return (value - datetime(1970, 1, 1)).total_seconds()

    def _transform(self, value: Any) -> Optional[float]:
        dt = as_datetime(value)
        return None if dt is None else self._seconds(dt)

    def ticks(self, count: int = 10) -> List[datetime]:
        start, stop = sorted(self.dates)
        years = list(range(start.year if start.month == 1 and start.day == 1 else start.year + 1, stop.year + 1))
        every = 2 if len(years) > count else 1
        return [datetime(y, 1, 1) for y in years[::every]]

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "domain": [d.isoformat() for d in self.dates], "range": list(self.range)}


class RadialScale(LinearScale):
    """Square-root interpolation so that area, not radius, grows linearly."""

    kind = "radial"

    def __call__(self, value: Any) -> Optional[float]:
        x = self._transform(value)
        if x is None:
            return None
        r0, r1 = self.range
        sq0, sq1 = r0 * abs(r0), r1 * abs(r1)
        y = sq0 + self._normalize(x) * (sq1 - sq0)
        return math.copysign(math.sqrt(abs(y)), y)


class BandScale:
    kind = "band"

    def __init__(
        self,
        domain: Iterable[Any],
        range: Sequence[float],
        padding_inner: float = 0.0,
        padding_outer: float = 0.0,
        align: float = 0.5,
    ):
        labels: List[Any] = []
        for label in domain:
            if label not in labels:
                labels.append(label)
        self.domain = labels
        self.range = (float(range[0]), float(range[1]))
        self.padding_inner = min(1.0, max(0.0, float(padding_inner)))
        self.padding_outer = max(0.0, float(padding_outer))
        self.align = min(1.0, max(0.0, float(align)))
        self._rescale()

    def _rescale(self) -> None:
        n = len(self.domain)
        r0, r1 = self.range
        reverse = r1 < r0
        start, stop = (r1, r0) if reverse else (r0, r1)
        self.step = (stop - start) / max(1.0, n - self.padding_inner + self.padding_outer * 2)
        start += (stop - start - self.step * (n - self.padding_inner)) * self.align
        self.bandwidth = self.step * (1 - self.padding_inner)
        positions = [start + self.step * i for i in range(n)]
        if reverse:
            positions.reverse()
        self._positions = dict(zip(self.domain, positions))

    def __call__(self, value: Any) -> Optional[float]:
        return self._positions.get(value)

    def center(self, value: Any) -> Optional[float]:
        pos = self(value)
        return None if pos is None else pos + self.bandwidth / 2

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "domain": list(self.domain), "range": list(self.range), "bandwidth": self.bandwidth}


def build_scale(kind: str, domain: Sequence[Any], range: Sequence[float], **opts: Any):
    """Build a scale mapping ``domain`` onto the pixel ``range``."""
    if kind == "linear":
        return LinearScale(domain, range, **opts)
    if kind == "log":
        return LogScale(domain, range, **opts)
    if kind == "time":
        return TimeScale(domain, range, **opts)
    if kind == "radial":
        return RadialScale(domain, range, **opts)
    if kind == "band":
        padding = opts.pop("padding", None)
        if padding is not None:
            opts.setdefault("padding_inner", padding)
            opts.setdefault("padding_outer", padding)
        return BandScale(domain, range, **opts)
    raise ValueError(f"Unknown scale kind: {kind!r}")


def shared_extent(*series: Iterable[Any], include_zero: bool = False) -> Optional[Tuple[float, float]]:
    """[min, max] across every series plotted together, ignoring missing values."""
    values = [v for s in series for v in (_finite(x) for x in s) if v is not None]
    if not values:
        return None
    lo, hi = min(values), max(values)
    if include_zero:
        lo, hi = min(0.0, lo), max(0.0, hi)
    return lo, hi


def positive_only(values: Iterable[Any]) -> List[float]:
    kept: List[float] = []
    dropped = 0
    for v in values:
        x = _finite(v)
        if x is not None and x > 0:
            kept.append(x)
        else:
            dropped += 1
    if dropped:
        logger.debug("Dropped %d non-positive values before log scale", dropped)
    return kept


def _hex_to_rgb(color: str) -> Tuple[int, int, int]:
    c = color.lstrip("#")
    if len(c) == 3:
        c = "".join(ch * 2 for ch in c)
    return int(c[0:2], 16), int(c[2:4], 16), int(c[4:6], 16)


class ColorScale:
    """Piecewise-linear RGB interpolation between colour stops."""

    def __init__(self, domain: Sequence[float], colors: Sequence[str]):
        if len(domain) != len(colors) or len(domain) < 2:
            raise ValueError("ColorScale needs matching domain/colour stops (at least two)")
        self.domain = [float(d) for d in domain]
        self.colors = list(colors)
        self._rgb = [_hex_to_rgb(c) for c in colors]

    def __call__(self, value: Any) -> str:
        x = _finite(value)
        if x is None:
            return DEFAULT_COLOR
        d = self.domain
        if x <= d[0]:
            return self.colors[0]
        if x >= d[-1]:
            return self.colors[-1]
        i = 0
        while i < len(d) - 2 and x > d[i + 1]:
            i += 1
        span = d[i + 1] - d[i]
        t = 0.0 if span == 0 else (x - d[i]) / span
        a, b = self._rgb[i], self._rgb[i + 1]
        rgb = tuple(int(round(a[k] + (b[k] - a[k]) * t)) for k in range(3))
        return "#{:02x}{:02x}{:02x}".format(*rgb)


class OrdinalColors:
    def __init__(self, domain: Iterable[Any], palette: Sequence[str] = TABLEAU10):
        self.palette = list(palette)
        self._lookup: Dict[Any, str] = {}
        for label in domain:
            if label not in self._lookup:
                self._lookup[label] = self.palette[len(self._lookup) % len(self.palette)]

    def __call__(self, value: Any) -> str:
        if value not in self._lookup:
            self._lookup[value] = self.palette[len(self._lookup) % len(self.palette)]
        return self._lookup[value]


def categorical_color(value: Any, lookup: Dict[Any, str], default: str = DEFAULT_COLOR) -> str:
    return lookup.get(value, default)
