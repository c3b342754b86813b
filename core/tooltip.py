from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from html import escape
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple


logger = logging.getLogger(__name__)

TOOLTIP_OFFSET = (10.0, -10.0)


def format_value(value: Any, fmt: str = ",.2f", prefix: str = "", suffix: str = "") -> str:
    if value is None:
        return "N/A"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if not math.isfinite(number):
        return "N/A"
    return f"{prefix}{number:{fmt}}{suffix}"


def format_tooltip(
    label: str,
    key: Any,
    value: Any,
    *,
    key_label: str = "Key",
    value_label: str = "Value",
    fmt: str = ",.2f",
    prefix: str = "",
    suffix: str = "",
) -> Dict[str, str]:
    shown = format_value(value, fmt, prefix, suffix)
    return {
        "title": str(label),
        "key": str(key),
        "value": shown,
        "html": (
            f"<strong>{escape(str(label))}</strong><br>"
            f"{escape(key_label)}: {escape(str(key))}<br>"
            f"{escape(value_label)}: {escape(shown)}"
        ),
    }


@dataclass(frozen=True)
class HoverTarget:
    """Pointer-sensitive area of a drawn primitive, plus what to show for it."""

    shape: str
    bounds: Tuple[float, ...]
    content: Dict[str, str] = field(default_factory=dict)

    def contains(self, x: float, y: float) -> bool:
        if self.shape == "rect":
            x0, y0, w, h = self.bounds
            return x0 <= x <= x0 + w and y0 <= y <= y0 + h
        if self.shape == "circle":
            cx, cy, r = self.bounds
            return (x - cx) ** 2 + (y - cy) ** 2 <= r * r
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"shape": self.shape, "bounds": list(self.bounds), "content": dict(self.content)}


def hit_test(targets: Sequence[HoverTarget], x: float, y: float) -> Optional[HoverTarget]:
    """Topmost target under the pointer; later targets are painted on top."""
    for target in reversed(targets):
        if target.contains(x, y):
            return target
    return None


class Tooltip:
    def __init__(self, chart_id: str, offset: Tuple[float, float] = TOOLTIP_OFFSET):
        self.chart_id = chart_id
        self.offset = offset
        self.mounted = True
        self.visible = False
        self.x = 0.0
        self.y = 0.0
        self.target: Optional[HoverTarget] = None

    @property
    def content(self) -> Dict[str, str]:
        return dict(self.target.content) if self.target is not None else {}

    @property
    def html(self) -> str:
        return self.content.get("html", "")

    def _place(self, x: float, y: float) -> None:
        self.x = x + self.offset[0]
        self.y = y + self.offset[1]

    def enter(self, target: HoverTarget, x: float, y: float) -> None:
        if not self.mounted:
            return
        self.target = target
        self.visible = True
        self._place(x, y)

    def move(self, x: float, y: float) -> None:
        if self.visible:
            self._place(x, y)

    def leave(self) -> None:
        self.visible = False
        self.target = None

    def release(self) -> None:
        self.leave()
        self.mounted = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chart_id": self.chart_id,
            "mounted": self.mounted,
            "visible": self.visible,
            "x": self.x,
            "y": self.y,
            "content": self.content,
        }


@contextmanager
def mount_tooltip(chart_id: str) -> Iterator[Tooltip]:
    tooltip = Tooltip(chart_id)
    logger.debug("Tooltip mounted for %s", chart_id)
    try:
        yield tooltip
    finally:
        tooltip.release()
        logger.debug("Tooltip released for %s", chart_id)


class HoverController:
    """Routes pointer positions to the single tooltip of one chart."""

    def __init__(self, tooltip: Tooltip, targets: Sequence[HoverTarget]):
        self.tooltip = tooltip
        self.targets: List[HoverTarget] = list(targets)

    def pointer_move(self, x: float, y: float) -> Optional[HoverTarget]:
        target = hit_test(self.targets, x, y)
        if target is None:
            if self.tooltip.visible:
                self.tooltip.leave()
        elif target is not self.tooltip.target:
            self.tooltip.enter(target, x, y)
        else:
            self.tooltip.move(x, y)
        return target

    def pointer_leave(self) -> None:
        self.tooltip.leave()
