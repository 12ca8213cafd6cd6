# catalog.py
from __future__ import annotations

import math
import random
from typing import Iterable, List, Optional, Sequence, Tuple

from models import Rect

Catalog = Tuple[Rect, ...]


def divisors(value: int) -> List[int]:
    """Ascending divisors of ``value`` (``[]`` for non-positive input)."""
    if value <= 0:
        return []
    small: List[int] = []
    large: List[int] = []
    for d in range(1, math.isqrt(value) + 1):
        if value % d == 0:
            small.append(d)
            if d != value // d:
                large.append(value // d)
    return small + large[::-1]


def _fits_board(rect: Rect, width: int, height: int) -> bool:
    return rect.fits(width, height) or rect.rotated().fits(width, height)


def divisor_catalog(area: int, width: int, height: int) -> Catalog:
    """All shapes ``(a, area // a)`` that fit the board in some orientation.

    Shapes are listed by ascending first side, so entry ``k`` and entry
    ``s - 1 - k`` are rotated twins and a square (if any) sits in the middle.
    """
    return tuple(
        Rect(a, area // a)
        for a in divisors(area)
        if _fits_board(Rect(a, area // a), width, height)
    )


def shape_catalog(width: int, height: int) -> Catalog:
    """Every shape ``(i, j)`` with ``i <= j`` that fits the board, except the board itself.

    Ordered by area descending, longer side descending on ties.  The subset
    search relies on this ordering only for its pruning speed.
    """
    board_key = (min(width, height), max(width, height))
    shapes: List[Rect] = []
    for i in range(1, max(width, height) + 1):
        for j in range(i, max(width, height) + 1):
            if not _fits_board(Rect(i, j), width, height):
                continue
            if (i, j) == board_key:
                continue
            shapes.append(Rect(i, j))
    shapes.sort(key=lambda r: (-r.area, -r.h, -r.w))
    return tuple(shapes)


def complete_rotations(rects: Iterable[Rect]) -> Catalog:
    """Turn a plain multiset into a rotation-paired packer list.

    ``[(2, 18), (4, 9), (6, 6)]`` becomes
    ``[(2, 18), (4, 9), (6, 6), (6, 6), (9, 4), (18, 2)]``: each shape is
    oriented short side first, sorted by longer side descending, then the
    rotated twins follow in reverse order.
    """
    oriented = [Rect(*r.key) for r in rects]
    oriented.sort(key=lambda r: (-r.h, -r.area))
    return tuple(oriented) + tuple(r.rotated() for r in reversed(oriented))


def is_rotation_paired(rects: Sequence[Rect]) -> bool:
    s = len(rects)
    return all(rects[k] == rects[s - 1 - k].rotated() for k in range(s))


def perfect_combinations(width: int, height: int, min_pieces: int) -> List[Tuple[int, Catalog]]:
    """Piece counts that could give a defect-0 dissection, with their catalogs.

    A count ``r`` must divide the board area, and the catalog of shapes with
    area ``board / r`` must hold at least ``r`` non-congruent shapes.
    """
    board = width * height
    out: List[Tuple[int, Catalog]] = []
    for r in divisors(board):
        if r < min_pieces:
            continue
        cat = divisor_catalog(board // r, width, height)
        if math.ceil(len(cat) / 2) < r:
            continue
        out.append((r, cat))
    return out


def randomized_order(catalog: Sequence[Rect], rng: Optional[random.Random] = None) -> Catalog:
    """Shuffle the first half of a rotation-paired divisor catalog.

    The shuffled half is re-completed with its rotations, so the result is
    still rotation-paired.  A centre square stays in the centre.
    """
    rng = rng or random.Random()
    s = len(catalog)
    half = list(catalog[: s // 2])
    rng.shuffle(half)
    centre = [catalog[s // 2]] if s % 2 == 1 else []
    return tuple(half) + tuple(centre) + tuple(r.rotated() for r in reversed(half))


__all__ = [
    "Catalog",
    "divisors",
    "divisor_catalog",
    "shape_catalog",
    "complete_rotations",
    "is_rotation_paired",
    "perfect_combinations",
    "randomized_order",
]
