"""Squarified treemap layout for a single level of leaves.

Leaves are sorted by size (descending) and tiled row by row so that each row
keeps its rectangles as close to square as possible (Bruls, Huizing & van
Wijk). Tiles cover the full bounds; each leaf rectangle is then inset by half
the padding on every side, leaving a gutter of ``padding`` between
neighbours and ``padding / 2`` along the outer edge.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence, Tuple

from core.aggregate import AggregateResult


PHI = (1 + math.sqrt(5)) / 2


@dataclass(frozen=True)
class TreemapLeaf:
    name: Any
    value: float


@dataclass(frozen=True)
class TreemapTile:
    name: Any
    value: float
    rank: int
    x0: float
    y0: float
    x1: float
    y1: float
    cell: Tuple[float, float, float, float]

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def cell_area(self) -> float:
        x0, y0, x1, y1 = self.cell
        return (x1 - x0) * (y1 - y0)


def leaves_from_results(results: Iterable[AggregateResult]) -> List[TreemapLeaf]:
    return [TreemapLeaf(name=r.key, value=float(r.value or 0.0)) for r in results]


def _dice(row: Sequence[TreemapLeaf], x0: float, y0: float, x1: float, y1: float, total: float) -> List[Tuple]:
    out = []
    k = (x1 - x0) / total if total else 0.0
    for leaf in row:
        nx = x0 + leaf.value * k
        out.append((leaf, x0, y0, nx, y1))
        x0 = nx
    return out


def _slice(row: Sequence[TreemapLeaf], x0: float, y0: float, x1: float, y1: float, total: float) -> List[Tuple]:
    out = []
    k = (y1 - y0) / total if total else 0.0
    for leaf in row:
        ny = y0 + leaf.value * k
        out.append((leaf, x0, y0, x1, ny))
        y0 = ny
    return out


def squarify(
    leaves: Sequence[TreemapLeaf],
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    ratio: float = PHI,
) -> List[Tuple[TreemapLeaf, float, float, float, float]]:
    cells: List[Tuple[TreemapLeaf, float, float, float, float]] = []
    remaining = sum(leaf.value for leaf in leaves)
    n = len(leaves)
    i0 = 0
    while i0 < n:
        dx, dy = x1 - x0, y1 - y0
        i1 = i0
        sum_value = leaves[i1].value
        i1 += 1
        min_value = max_value = sum_value
        alpha = max(dy / dx, dx / dy) / (remaining * ratio)
        beta = sum_value * sum_value * alpha
        min_ratio = max(max_value / beta, beta / min_value)

        while i1 < n:
            node_value = leaves[i1].value
            candidate = sum_value + node_value
            lo, hi = min(min_value, node_value), max(max_value, node_value)
            beta = candidate * candidate * alpha
            new_ratio = max(hi / beta, beta / lo)
            if new_ratio > min_ratio:
                break
            sum_value, min_value, max_value, min_ratio = candidate, lo, hi, new_ratio
            i1 += 1

        row = leaves[i0:i1]
        last_row = i1 >= n
        if dx < dy:
            ny = y1 if last_row else y0 + dy * sum_value / remaining
            cells.extend(_dice(row, x0, y0, x1, ny, sum_value))
            y0 = ny
        else:
            nx = x1 if last_row else x0 + dx * sum_value / remaining
            cells.extend(_slice(row, x0, y0, nx, y1, sum_value))
            x0 = nx
        remaining -= sum_value
        i0 = i1
    return cells


def treemap(leaves: Iterable[TreemapLeaf], width: float, height: float, padding: float = 1.0) -> List[TreemapTile]:
    """Lay out ``leaves`` inside ``[0, width] x [0, height]``.

    Leaves with a non-positive or non-finite size are not drawn.
    """
    ordered = sorted(
        (leaf for leaf in leaves if math.isfinite(leaf.value) and leaf.value > 0),
        key=lambda leaf: (-leaf.value, str(leaf.name)),
    )
    if not ordered or width <= 0 or height <= 0:
        return []

    half = max(0.0, padding) / 2
    tiles: List[TreemapTile] = []
    for rank, (leaf, x0, y0, x1, y1) in enumerate(squarify(ordered, 0.0, 0.0, float(width), float(height)), start=1):
        ix0, ix1 = x0 + half, x1 - half
        iy0, iy1 = y0 + half, y1 - half
        if ix1 < ix0:
            ix0 = ix1 = (x0 + x1) / 2
        if iy1 < iy0:
            iy0 = iy1 = (y0 + y1) / 2
        tiles.append(
            TreemapTile(
                name=leaf.name,
                value=leaf.value,
                rank=rank,
                x0=ix0,
                y0=iy0,
                x1=ix1,
                y1=iy1,
                cell=(x0, y0, x1, y1),
            )
        )
    return tiles
