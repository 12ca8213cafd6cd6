"""Exact-cover packing with Algorithm X.

The packing problem is translated into an exact-cover matrix:

+--------------------------------------+------------------+-------------------+
|                                      | tile covered     | rectangle used    |
|                                      | (W*H columns)    | (m columns)       |
+--------------------------------------+------------------+-------------------+
| rect 0, orientation 0, position 0    | 1 per footprint  | 1 in column W*H+0 |
| ...                                  |                  |                   |
| rect m-1, last orientation, last pos |                  |                   |
+--------------------------------------+------------------+-------------------+

Selecting a set of rows that hits every column exactly once places every
rectangle exactly once and covers every tile exactly once.  The matrix is
kept sparse as two index-addressed adjacency lists, which makes cover and
uncover proportional to the size of the rows they touch.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Set, Tuple

from config import CFG, node_limit as _node_limit
from models import (
    InvariantViolation,
    PackResult,
    Placed,
    PlacementRow,
    Rect,
    grid_from_placements,
)

# One cover step: (column, rows that were in it) in the order columns were removed.
CoverRecord = List[Tuple[int, Set[int]]]


def _orientations(rect: Rect) -> List[Tuple[int, int]]:
    if rect.w == rect.h:
        return [(rect.w, rect.h)]
    return [(rect.w, rect.h), (rect.h, rect.w)]


def build_cover_rows(width: int, height: int, rects: Sequence[Rect]) -> Tuple[int, List[PlacementRow]]:
    """Return ``(column_count, rows)`` for packing ``rects`` on a ``width`` × ``height`` board.

    Tile ``(x, y)`` is column ``y * width + x``; "rectangle ``i`` used" is
    column ``width * height + i``.  Rows come out grouped by rectangle, then
    orientation, then position (row-major), and the search relies on that
    order being stable.
    """
    tiles = width * height
    rows: List[PlacementRow] = []
    for rect_id, rect in enumerate(rects):
        used_col = tiles + rect_id
        for w, h in _orientations(rect):
            if w > width or h > height:
                continue
            for py in range(height - h + 1):
                for px in range(width - w + 1):
                    cols = [
                        (py + dy) * width + (px + dx)
                        for dy in range(h)
                        for dx in range(w)
                    ]
                    cols.append(used_col)
                    rows.append(PlacementRow(rect_id, px, py, w, h, tuple(cols)))
    return tiles + len(rects), rows


class ExactCover:
    """Algorithm X over a sparse 0/1 matrix.

    ``column_rows[c]`` holds the rows still able to satisfy column ``c``;
    ``row_columns[r]`` is the fixed list of columns row ``r`` satisfies.
    A covered column is marked inactive and its row set parked in the cover
    record so :meth:`uncover` can put everything back in reverse order.
    """

    def __init__(self, column_count: int, rows: Sequence[Sequence[int]]) -> None:
        self.row_columns: List[Tuple[int, ...]] = [tuple(cols) for cols in rows]
        self.column_rows: List[Set[int]] = [set() for _ in range(column_count)]
        for r, cols in enumerate(self.row_columns):
            for c in cols:
                self.column_rows[c].add(r)
        self.active: List[bool] = [True] * column_count
        self.active_count = column_count
        self.solution: List[int] = []
        self.nodes = 0

    # --- reversible matrix operations ---------------------------------

    def choose_column(self) -> Optional[int]:
        """Active column with the fewest rows (lowest index on ties), or ``None`` when all are covered."""
        best: Optional[int] = None
        best_size = 0
        for c, alive in enumerate(self.active):
            if not alive:
                continue
            size = len(self.column_rows[c])
            if best is None or size < best_size:
                best, best_size = c, size
                if size == 0:
                    break
        return best

    def cover(self, row: int) -> CoverRecord:
        record: CoverRecord = []
        for j in self.row_columns[row]:
            rows_j = self.column_rows[j]
            for i in rows_j:
                for k in self.row_columns[i]:
                    if k != j:
                        self.column_rows[k].discard(i)
            record.append((j, rows_j))
            self.column_rows[j] = set()
            self.active[j] = False
            self.active_count -= 1
        return record

    def uncover(self, record: CoverRecord) -> None:
        for j, rows_j in reversed(record):
            self.column_rows[j] = rows_j
            self.active[j] = True
            self.active_count += 1
            for i in rows_j:
                for k in self.row_columns[i]:
                    if k != j:
                        self.column_rows[k].add(i)

    def snapshot(self) -> Tuple[Tuple[bool, ...], Tuple[Tuple[int, ...], ...]]:
        return (
            tuple(self.active),
            tuple(tuple(sorted(rows)) for rows in self.column_rows),
        )

    # --- search --------------------------------------------------------

    def search(self, *, limit: Optional[int] = None, check_invariants: bool = False) -> bool:
        """Run Algorithm X; on success ``self.solution`` holds the chosen rows.

        Raises ``_NodeLimit`` when ``limit`` nodes have been expanded.
        """
        self.nodes += 1
        if limit is not None and self.nodes > limit:
            raise _NodeLimit()

        col = self.choose_column()
        if col is None:
            return True

        candidates = sorted(self.column_rows[col])
        if not candidates:
            return False

        for row in candidates:
            before = self.snapshot() if check_invariants else None
            self.solution.append(row)
            record = self.cover(row)
            if self.search(limit=limit, check_invariants=check_invariants):
                return True
            self.uncover(record)
            self.solution.pop()
            if before is not None and self.snapshot() != before:
                raise InvariantViolation(f"uncover of row {row} did not restore the matrix")
        return False


class _NodeLimit(Exception):
    pass


def solve_dancing_links(
    width: int,
    height: int,
    rects: Sequence[Rect],
    *,
    node_limit: Optional[int] = None,
    check_invariants: Optional[bool] = None,
) -> PackResult:
    """Pack every rectangle of ``rects`` (rotations allowed) onto the board exactly.

    Owner ids in the returned grid are the 1-based positions in ``rects``.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"board must be positive, got {width}x{height}")
    if check_invariants is None:
        check_invariants = bool(CFG.CHECK_INVARIANTS)
    limit = _node_limit(node_limit)

    if not rects:
        return PackResult(False, reason="no rectangles")
    if sum(r.area for r in rects) != width * height:
        return PackResult(False, reason="area mismatch")

    column_count, rows = build_cover_rows(width, height, rects)
    matrix = ExactCover(column_count, [row.columns for row in rows])
    try:
        solved = matrix.search(limit=limit, check_invariants=check_invariants)
    except _NodeLimit:
        return PackResult(False, nodes=matrix.nodes, reason="node_limit")

    if not solved:
        return PackResult(False, nodes=matrix.nodes, reason="exhausted")

    placements: List[Placed] = []
    for row_idx in matrix.solution:
        row = rows[row_idx]
        placements.append(Placed(row.px, row.py, Rect(row.w, row.h), owner=row.rect_id + 1))
    placements.sort(key=lambda p: p.owner)
    return PackResult(
        True,
        grid=grid_from_placements(width, height, placements),
        placements=placements,
        nodes=matrix.nodes,
    )


__all__ = ["build_cover_rows", "ExactCover", "solve_dancing_links"]
