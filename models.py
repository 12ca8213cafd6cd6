from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple

Grid = List[List[int]]


class InvariantViolation(AssertionError):
    """Raised when a reversible search step fails to restore its state exactly."""


@dataclass(frozen=True)
class Rect:
    w: int
    h: int

    @property
    def area(self) -> int:
        return self.w * self.h

    @property
    def key(self) -> Tuple[int, int]:
        return (min(self.w, self.h), max(self.w, self.h))

    def rotated(self) -> "Rect":
        return Rect(self.h, self.w)

    def congruent(self, other: "Rect") -> bool:
        return self.key == other.key

    def fits(self, width: int, height: int) -> bool:
        return 0 < self.w <= width and 0 < self.h <= height

    def __str__(self) -> str:
        return f"{self.w}x{self.h}"


@dataclass
class Placed:
    x: int
    y: int
    rect: Rect
    owner: int = 0


class Decision(IntEnum):
    UNDECIDED = -1
    EXCLUDED = 0
    INCLUDED = 1


@dataclass(frozen=True)
class CandidateSubset:
    mask: Tuple[Decision, ...]
    defect: int
    total_area: int

    @property
    def indices(self) -> Tuple[int, ...]:
        return tuple(i for i, v in enumerate(self.mask) if v == Decision.INCLUDED)

    def __len__(self) -> int:
        return len(self.indices)


@dataclass(frozen=True)
class PlacementRow:
    rect_id: int
    px: int
    py: int
    w: int
    h: int
    columns: Tuple[int, ...]


@dataclass
class PackResult:
    ok: bool
    grid: Grid = field(default_factory=list)
    placements: List[Placed] = field(default_factory=list)
    nodes: int = 0
    reason: Optional[str] = None


def empty_grid(width: int, height: int) -> Grid:
    return [[0] * width for _ in range(height)]


def stamp(grid: Grid, placed: Placed) -> None:
    for y in range(placed.y, placed.y + placed.rect.h):
        row = grid[y]
        for x in range(placed.x, placed.x + placed.rect.w):
            row[x] = placed.owner


def grid_from_placements(width: int, height: int, placements: List[Placed]) -> Grid:
    grid = empty_grid(width, height)
    for p in placements:
        stamp(grid, p)
    return grid


def format_grid(grid: Grid) -> str:
    """Plain-text rendering with right-aligned owner ids, one board row per line."""
    if not grid:
        return ""
    cell = max(len(str(v)) for row in grid for v in row)
    return "\n".join(" ".join(str(v).rjust(cell) for v in row) for row in grid)
