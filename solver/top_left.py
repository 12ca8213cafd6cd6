# solver/top_left.py
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from catalog import complete_rotations
from config import CFG, node_limit as _node_limit
from models import (
    InvariantViolation,
    PackResult,
    Placed,
    Rect,
    grid_from_placements,
)


def _skyline_from(width: int, rects: Sequence[Rect], placed: Sequence[Tuple[int, int, int]]) -> List[int]:
    heights = [0] * width
    for k, px, _py in placed:
        for c in range(px, px + rects[k].w):
            heights[c] += rects[k].h
    return heights


def pack_top_left(
    width: int,
    height: int,
    rects: Sequence[Rect],
    pieces: Optional[int] = None,
    *,
    symmetric: Optional[bool] = None,
    node_limit: Optional[int] = None,
    check_invariants: Optional[bool] = None,
) -> PackResult:
    """Place ``pieces`` rectangles from a rotation-paired list so they fill the board.

    ``rects[k]`` and ``rects[s - 1 - k]`` must be the two orientations of one
    piece; using either one blocks the other.  The board is tracked as a
    skyline of column heights.  Each step anchors at the lowest column (the
    leftmost of equal ones) and places the first unused rectangle, in list
    order, that stays in bounds and sits on a flat stretch of skyline.  When
    nothing fits, the most recent placement is lifted and the scan resumes
    just past it.

    On a square board the first placement only draws from the first half of
    the list: a transposed tiling is a tiling too, so the other half adds
    nothing but mirror images.

    Owner ids in the returned grid are the 1-based placement order.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"board must be positive, got {width}x{height}")
    s = len(rects)
    if pieces is None:
        pieces = s // 2
    if symmetric is None:
        symmetric = width == height
    if check_invariants is None:
        check_invariants = bool(CFG.CHECK_INVARIANTS)
    limit = _node_limit(node_limit)

    if pieces <= 0 or s == 0:
        return PackResult(False, reason="no rectangles")

    first_limit = (s + 1) // 2 if symmetric else s
    board_cells = width * height

    heights = [0] * width
    used = [0] * s          # 0 free, >0 placement order, -1 blocked by its twin
    placed: List[Tuple[int, int, int]] = []   # (k, x, y), most recent last
    filled = 0
    count = 0
    k_start = 0
    nodes = 0
    x = y = 0

    def _fits(k: int) -> bool:
        r = rects[k]
        if x + r.w > width or y + r.h > height:
            return False
        for c in range(x + 1, x + r.w):
            if heights[c] > y:
                return False
        return True

    while True:
        nodes += 1
        if limit is not None and nodes > limit:
            return PackResult(False, nodes=nodes, reason="node_limit")

        chosen = -1
        if count < pieces:
            stop = first_limit if count == 0 else s
            for k in range(k_start, stop):
                if used[k] == 0 and _fits(k):
                    chosen = k
                    break
        elif filled == board_cells:
            break
        # count == pieces on a board with holes falls through to a backtrack.

        if chosen >= 0:
            r = rects[chosen]
            placed.append((chosen, x, y))
            for c in range(x, x + r.w):
                heights[c] += r.h
            filled += r.area
            count += 1
            used[s - 1 - chosen] = -1
            used[chosen] = count
            k_start = 0
        else:
            if not placed:
                return PackResult(False, nodes=nodes, reason="exhausted")
            k, px, _py = placed.pop()
            r = rects[k]
            for c in range(px, px + r.w):
                heights[c] -= r.h
            filled -= r.area
            count -= 1
            used[k] = 0
            used[s - 1 - k] = 0
            k_start = k + 1
            if check_invariants and heights != _skyline_from(width, rects, placed):
                raise InvariantViolation(f"skyline not restored after lifting rectangle {k}")

        y = min(heights)
        x = heights.index(y)

    placements = [
        Placed(px, py, rects[k], owner=order)
        for order, (k, px, py) in enumerate(placed, start=1)
    ]
    return PackResult(
        True,
        grid=grid_from_placements(width, height, placements),
        placements=placements,
        nodes=nodes,
    )


def pack_pieces(
    width: int,
    height: int,
    rects: Iterable[Rect],
    **kwargs,
) -> PackResult:
    """Pack a plain multiset with the top-left packer (rotations allowed)."""
    pieces = list(rects)
    if sum(r.area for r in pieces) != width * height:
        return PackResult(False, reason="area mismatch")
    return pack_top_left(width, height, complete_rotations(pieces), len(pieces), **kwargs)


__all__ = ["pack_top_left", "pack_pieces"]
