# solver/verify.py
from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, Optional, Tuple

from models import Grid, Rect

Box = Tuple[int, int, int, int]  # (x, y, w, h)


def owner_boxes(grid: Grid) -> Dict[int, Box]:
    """Bounding box of every non-zero owner id in ``grid``."""
    bounds: Dict[int, list] = {}
    for y, row in enumerate(grid):
        for x, owner in enumerate(row):
            if owner == 0:
                continue
            b = bounds.get(owner)
            if b is None:
                bounds[owner] = [x, y, x, y]
            else:
                b[0] = min(b[0], x)
                b[1] = min(b[1], y)
                b[2] = max(b[2], x)
                b[3] = max(b[3], y)
    return {
        owner: (x0, y0, x1 - x0 + 1, y1 - y0 + 1)
        for owner, (x0, y0, x1, y1) in bounds.items()
    }


def grid_problems(grid: Grid, expected: Optional[Iterable[Rect]] = None) -> list:
    """Return a list of human-readable problems; empty means a valid exact tiling.

    A valid grid is rectangular, has no empty tiles, and every owner's tiles
    form exactly one filled axis-aligned rectangle.  When ``expected`` is given
    the owners' shapes (up to rotation) must match it as a multiset.
    """
    problems = []
    if not grid or not grid[0]:
        return ["empty grid"]
    width = len(grid[0])
    if any(len(row) != width for row in grid):
        return ["ragged grid"]

    counts: Counter = Counter()
    for y, row in enumerate(grid):
        for x, owner in enumerate(row):
            if owner == 0:
                problems.append(f"tile ({x}, {y}) is uncovered")
            else:
                counts[owner] += 1

    boxes = owner_boxes(grid)
    # Every tile of an owner lies inside its box, so a full count means a full box.
    for owner, (_x0, _y0, w, h) in sorted(boxes.items()):
        if counts[owner] != w * h:
            problems.append(f"owner {owner} does not form one rectangle")

    if expected is not None:
        want = Counter(r.key for r in expected)
        got = Counter(Rect(w, h).key for (_x, _y, w, h) in boxes.values())
        if want != got:
            problems.append(f"shapes {dict(got)} differ from expected {dict(want)}")
    return problems


def is_exact_tiling(grid: Grid, expected: Optional[Iterable[Rect]] = None) -> bool:
    return not grid_problems(grid, expected)


def grid_defect(grid: Grid) -> int:
    """Largest minus smallest piece area in a tiled grid."""
    boxes = owner_boxes(grid)
    if not boxes:
        return 0
    areas = [w * h for (_x, _y, w, h) in boxes.values()]
    return max(areas) - min(areas)


__all__ = ["owner_boxes", "grid_problems", "is_exact_tiling", "grid_defect"]
