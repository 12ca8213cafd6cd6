# Orchestrator: catalog -> subset search -> race -> packer
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from catalog import (
    complete_rotations,
    divisor_catalog,
    perfect_combinations,
    randomized_order,
    shape_catalog,
)
from config import CFG, worker_count
from models import Grid, PackResult, Rect, format_grid
from progress import ATTEMPT_LOGGER, ProgressTracker, log_attempt_detail
from solver.dancing_links import solve_dancing_links
from solver.race import PackJob, RaceResult, race
from solver.subsets import rects_for, search_subsets
from solver.top_left import pack_top_left
from solver.verify import owner_boxes

SOLVERS = ("top_left", "dancing_links")
NO_COMBINATIONS = "No combinations possible"
NO_SOLUTION = "No solution"


@dataclass
class DefectResult:
    ok: bool
    defect: Optional[int] = None
    grid: Grid = field(default_factory=list)
    rects: List[Rect] = field(default_factory=list)
    candidates: int = 0
    attempted: int = 0
    reason: Optional[str] = None
    failures: List[str] = field(default_factory=list)


# ---------- helpers ----------

def _resolve_solver(solver: Optional[str]) -> str:
    name = (solver or CFG.SOLVER or "top_left").strip().lower().replace("-", "_")
    if name not in SOLVERS:
        raise ValueError(f"Unknown solver {solver!r}; expected one of {', '.join(SOLVERS)}")
    return name


def _board(n: int, m: Optional[int]) -> Tuple[int, int]:
    width = int(n)
    height = width if m is None else int(m)
    if width <= 0 or height <= 0:
        raise ValueError(f"board must be positive, got {width}x{height}")
    return width, height


def make_packer(solver: Optional[str], width: int, height: int) -> Callable[[PackJob], PackResult]:
    """Map a solver flag to a callable that packs one job on the given board.

    Jobs carry a plain multiset; the top-left packer gets it rotation-paired,
    Dancing Links gets it as is.  Jobs whose rects are already rotation-paired
    (perfect-dissection catalogs) must use ``pack_top_left`` directly.
    """
    name = _resolve_solver(solver)

    if name == "dancing_links":
        def _pack(job: PackJob) -> PackResult:
            return solve_dancing_links(width, height, job.rects)
    else:
        def _pack(job: PackJob) -> PackResult:
            return pack_top_left(width, height, complete_rotations(job.rects), job.pieces)
    return _pack


def _paired_packer(width: int, height: int) -> Callable[[PackJob], PackResult]:
    def _pack(job: PackJob) -> PackResult:
        return pack_top_left(width, height, job.rects, job.pieces)
    return _pack


def _finish(
    result: RaceResult,
    progress: Optional[ProgressTracker],
    candidates: int,
    t0: float,
) -> DefectResult:
    if result.ok and result.job is not None:
        out = DefectResult(
            True,
            defect=result.defect,
            grid=result.grid,
            rects=list(result.job.rects),
            candidates=candidates,
            attempted=result.attempted,
            failures=result.failures,
        )
        if ATTEMPT_LOGGER.isEnabledFor(logging.DEBUG):
            ATTEMPT_LOGGER.debug("Winning grid\n%s", format_grid(result.grid))
    else:
        out = DefectResult(
            False,
            candidates=candidates,
            attempted=result.attempted,
            reason=NO_SOLUTION,
            failures=result.failures,
        )
    if progress is not None:
        progress.set_done(out.ok, reason=out.reason)
    log_attempt_detail(
        "Solve finished",
        ok=out.ok,
        defect=out.defect,
        candidates=candidates,
        attempted=out.attempted,
        elapsed=f"{time.time() - t0:.2f}s",
    )
    return out


# ---------- public entrypoints ----------

def solve_defect(
    n: int,
    d: int,
    *,
    m: Optional[int] = None,
    defect_floor: Optional[int] = None,
    solver: Optional[str] = None,
    workers: Optional[int] = None,
    progress: Optional[ProgressTracker] = None,
) -> DefectResult:
    """Smallest-defect dissection of an ``n`` × ``m`` board with defect at most ``d``.

    1) every non-congruent shape that fits the board (except the board itself),
    2) all subsets whose areas sum to the board area with defect ``<= d``,
       smallest defect first,
    3) a race of the packer over those subsets.
    """
    t0 = time.time()
    width, height = _board(n, m)
    if d < 0:
        raise ValueError(f"defect bound must be non-negative, got {d}")
    name = _resolve_solver(solver)
    floor = CFG.DEFECT_FLOOR if defect_floor is None else int(defect_floor)

    if progress is not None:
        progress.start()
        progress.set_phase("subsets")

    catalog = shape_catalog(width, height)
    subsets = search_subsets(
        [r.area for r in catalog],
        width * height,
        d,
        defect_floor=floor,
    )
    log_attempt_detail(
        "Run setup",
        board=f"{width}x{height}",
        defect_bound=d,
        solver=name,
        catalog=len(catalog),
        subsets=len(subsets),
    )
    if not subsets:
        if progress is not None:
            progress.set_done(False, reason=NO_COMBINATIONS)
        return DefectResult(False, reason=NO_COMBINATIONS)

    jobs = []
    for idx, subset in enumerate(subsets):
        rects = tuple(rects_for(subset, catalog))
        jobs.append(PackJob(index=idx, defect=subset.defect, rects=rects, pieces=len(subset)))

    if progress is not None:
        progress.set_phase("packing")
    result = race(jobs, make_packer(name, width, height), workers=workers, progress=progress)
    return _finish(result, progress, len(subsets), t0)


def solve_perfect(
    n: int,
    *,
    m: Optional[int] = None,
    min_pieces: Optional[int] = None,
    workers: Optional[int] = None,
    progress: Optional[ProgressTracker] = None,
) -> DefectResult:
    """Defect-0 dissection: ``r`` equal-area, pairwise non-congruent pieces.

    Candidate piece counts come from the divisors of the board area; each
    count becomes one job over the divisor catalog of ``area / r``.  Fewer
    pieces are preferred.
    """
    t0 = time.time()
    width, height = _board(n, m)
    pieces_floor = CFG.MIN_PIECES if min_pieces is None else int(min_pieces)

    if progress is not None:
        progress.start()
        progress.set_phase("combinations")

    combos = perfect_combinations(width, height, pieces_floor)
    log_attempt_detail(
        "Run setup",
        board=f"{width}x{height}",
        min_pieces=pieces_floor,
        combinations=len(combos),
    )
    if not combos:
        if progress is not None:
            progress.set_done(False, reason=NO_COMBINATIONS)
        return DefectResult(False, reason=NO_COMBINATIONS)

    jobs = [
        PackJob(index=idx, defect=0, rects=cat, pieces=r)
        for idx, (r, cat) in enumerate(combos)
    ]
    if progress is not None:
        progress.set_phase("packing")
    result = race(jobs, _paired_packer(width, height), workers=workers, progress=progress)
    out = _finish(result, progress, len(combos), t0)
    if out.ok and result.job is not None:
        out.rects = _pieces_in_grid(result.job.rects, result.grid)
    return out


def solve_pieces(
    n: int,
    r: int,
    *,
    m: Optional[int] = None,
    workers: Optional[int] = None,
    seed: Optional[int] = None,
    progress: Optional[ProgressTracker] = None,
) -> DefectResult:
    """Defect-0 dissection with exactly ``r`` pieces.

    One job uses the catalog in its natural order; every extra worker gets
    the same catalog with its first half shuffled, which often reaches a
    solution far sooner than the fixed order.
    """
    t0 = time.time()
    width, height = _board(n, m)
    if r <= 0:
        raise ValueError(f"piece count must be positive, got {r}")
    board = width * height
    if board % r != 0:
        return DefectResult(False, reason=NO_COMBINATIONS)
    catalog = divisor_catalog(board // r, width, height)
    if (len(catalog) + 1) // 2 < r:
        return DefectResult(False, reason=NO_COMBINATIONS)

    n_workers = worker_count(workers)
    rng = random.Random(CFG.RANDOM_SEED if seed is None else seed)
    orders = [catalog] + [randomized_order(catalog, rng) for _ in range(n_workers - 1)]
    jobs = [PackJob(index=i, defect=0, rects=order, pieces=r) for i, order in enumerate(orders)]

    if progress is not None:
        progress.start()
        progress.set_phase("packing")
    log_attempt_detail(
        "Run setup",
        board=f"{width}x{height}",
        pieces=r,
        catalog=len(catalog),
        orders=len(orders),
    )
    result = race(jobs, _paired_packer(width, height), workers=n_workers, progress=progress)
    out = _finish(result, progress, 1, t0)
    if out.ok and result.job is not None:
        out.rects = _pieces_in_grid(result.job.rects, result.grid)
    return out


def _pieces_in_grid(catalog: Tuple[Rect, ...], grid: Grid) -> List[Rect]:
    """The distinct shapes of ``catalog`` that appear in ``grid``."""
    keys = {Rect(w, h).key for (_x, _y, w, h) in owner_boxes(grid).values()}
    seen = set()
    out: List[Rect] = []
    for rect in catalog:
        if rect.key in keys and rect.key not in seen:
            seen.add(rect.key)
            out.append(Rect(*rect.key))
    return out


__all__ = [
    "DefectResult",
    "SOLVERS",
    "NO_COMBINATIONS",
    "NO_SOLUTION",
    "make_packer",
    "solve_defect",
    "solve_perfect",
    "solve_pieces",
]
