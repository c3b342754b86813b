"""Tests for the squarified treemap layout."""

from __future__ import annotations

from itertools import combinations

from pytest import approx

from core.aggregate import AggregateResult
from core.treemap import TreemapLeaf, leaves_from_results, squarify, treemap


LEAVES = [TreemapLeaf(name, value) for name, value in [("AI", 6), ("Software", 6), ("Robotics", 4), ("Cloud", 3), ("Biotech", 2), ("Telecom", 2), ("Semis", 1)]]


def _overlap(a, b) -> float:
    w = min(a[2], b[2]) - max(a[0], b[0])
    h = min(a[3], b[3]) - max(a[1], b[1])
    return max(0.0, w) * max(0.0, h)


def test_cells_cover_bounds_proportionally() -> None:
    """Cell areas are proportional to leaf values."""

    tiles = treemap(LEAVES, 600, 400, padding=0)
    total = sum(leaf.value for leaf in LEAVES)
    assert sum(t.cell_area for t in tiles) == approx(600 * 400)
    for t in tiles:
        assert t.cell_area == approx(600 * 400 * t.value / total)


def test_tiles_do_not_overlap_and_stay_in_bounds() -> None:
    """Tiles stay inside the bounds without overlapping."""

    tiles = treemap(LEAVES, 600, 400, padding=2)
    for t in tiles:
        assert 0 <= t.x0 <= t.x1 <= 600
        assert 0 <= t.y0 <= t.y1 <= 400
    for a, b in combinations(tiles, 2):
        assert _overlap((a.x0, a.y0, a.x1, a.y1), (b.x0, b.y0, b.x1, b.y1)) == approx(0.0)


def test_padding_insets_each_tile_by_half() -> None:
    """Padding shrinks each tile by half on every side."""

    tiles = treemap(LEAVES, 600, 400, padding=4)
    for t in tiles:
        x0, y0, x1, y1 = t.cell
        assert t.x0 == approx(x0 + 2)
        assert t.y1 == approx(y1 - 2)


def test_ranks_follow_descending_size() -> None:
    """Tiles are ranked from largest to smallest."""

    tiles = treemap(LEAVES, 600, 400)
    assert [t.rank for t in tiles] == list(range(1, len(LEAVES) + 1))
    assert [t.name for t in tiles][:3] == ["AI", "Software", "Robotics"]
    values = [t.value for t in tiles]
    assert values == sorted(values, reverse=True)


def test_non_positive_leaves_are_not_drawn() -> None:
    """Leaves at or below zero get no tile."""

    tiles = treemap([TreemapLeaf("a", 0), TreemapLeaf("b", -3), TreemapLeaf("c", 5)], 100, 100)
    assert [t.name for t in tiles] == ["c"]
    assert treemap([TreemapLeaf("a", 0)], 100, 100) == []
    assert treemap(LEAVES, 0, 100) == []


def test_squarify_first_row_is_reasonably_square() -> None:
    """The first cell keeps a low aspect ratio."""

    cells = squarify(sorted(LEAVES, key=lambda leaf: -leaf.value), 0, 0, 600, 400)
    _, x0, y0, x1, y1 = cells[0]
    ratio = max((x1 - x0) / (y1 - y0), (y1 - y0) / (x1 - x0))
    assert ratio < 3


def test_leaves_from_results_treats_missing_as_zero() -> None:
    """Missing aggregate values become zero-size leaves."""

    leaves = leaves_from_results([AggregateResult("AI", None, 0), AggregateResult("Robotics", 2.5, 1)])
    assert [(leaf.name, leaf.value) for leaf in leaves] == [("AI", 0.0), ("Robotics", 2.5)]
