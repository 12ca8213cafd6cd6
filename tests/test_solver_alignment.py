import random

import pytest

from models import Rect
from solver.dancing_links import solve_dancing_links
from solver.top_left import pack_pieces
from solver.verify import is_exact_tiling

INSTANCES = 120
MAX_PIECES = 6


def _guillotine(rng, width, height, pieces):
    """Cut the board into ``pieces`` rectangles with straight cuts, so a tiling exists."""
    parts = [(width, height)]
    while len(parts) < pieces:
        splittable = [i for i, (w, h) in enumerate(parts) if w > 1 or h > 1]
        if not splittable:
            break
        w, h = parts.pop(rng.choice(splittable))
        if h == 1 or (w > 1 and rng.random() < 0.5):
            cut = rng.randint(1, w - 1)
            parts += [(cut, h), (w - cut, h)]
        else:
            cut = rng.randint(1, h - 1)
            parts += [(w, cut), (w, h - cut)]
    return [Rect(w, h) if rng.random() < 0.5 else Rect(h, w) for w, h in parts]


def _random_multiset(rng, width, height):
    """Random shapes whose areas add up to the board; often not packable."""
    for _ in range(50):
        remaining = width * height
        rects = []
        while remaining > 0:
            last = len(rects) == MAX_PIECES - 1
            options = [
                (w, h)
                for w in range(1, width + 1)
                for h in range(1, height + 1)
                if (w * h == remaining if last else w * h <= remaining)
            ]
            if not options:
                break
            w, h = rng.choice(options)
            rects.append(Rect(w, h))
            remaining -= w * h
        if remaining == 0:
            return rects
    return [Rect(1, 1)] * (width * height)


def _instances():
    rng = random.Random(20240917)
    out = []
    for i in range(INSTANCES):
        width = rng.randint(2, 5)
        height = rng.randint(2, 5)
        if i % 2 == 0:
            rects = _guillotine(rng, width, height, rng.randint(2, MAX_PIECES))
        else:
            rects = _random_multiset(rng, width, height)
        out.append((width, height, rects))
    return out


CASES = _instances()


@pytest.mark.parametrize("width, height, rects", CASES)
def test_packers_agree(width, height, rects):
    dlx = solve_dancing_links(width, height, rects)
    tl = pack_pieces(width, height, rects)

    assert dlx.ok == tl.ok, (width, height, rects)
    if dlx.ok:
        assert is_exact_tiling(dlx.grid, rects)
        assert is_exact_tiling(tl.grid, rects)
        assert len(dlx.grid) == len(tl.grid) == height


def test_guillotine_cases_always_pack():
    for width, height, rects in CASES[::2]:
        assert solve_dancing_links(width, height, rects).ok


def test_random_cases_include_failures():
    results = [solve_dancing_links(w, h, rects).ok for w, h, rects in CASES[1::2]]
    assert not all(results)


def _cp_sat_feasible(cp_model, width, height, rects):
    model = cp_model.CpModel()
    x_intervals = []
    y_intervals = []
    for i, rect in enumerate(rects):
        shapes = {(rect.w, rect.h), (rect.h, rect.w)}
        chosen = []
        for j, (w, h) in enumerate(sorted(shapes)):
            if w > width or h > height:
                continue
            on = model.NewBoolVar(f"on_{i}_{j}")
            x = model.NewIntVar(0, width - w, f"x_{i}_{j}")
            y = model.NewIntVar(0, height - h, f"y_{i}_{j}")
            x_intervals.append(model.NewOptionalFixedSizeIntervalVar(x, w, on, f"ix_{i}_{j}"))
            y_intervals.append(model.NewOptionalFixedSizeIntervalVar(y, h, on, f"iy_{i}_{j}"))
            chosen.append(on)
        if not chosen:
            return False
        model.AddExactlyOne(chosen)
    model.AddNoOverlap2D(x_intervals, y_intervals)

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = 10.0
    solver.parameters.num_search_workers = 1
    status = solver.Solve(model)
    assert status in (cp_model.OPTIMAL, cp_model.FEASIBLE, cp_model.INFEASIBLE)
    return status in (cp_model.OPTIMAL, cp_model.FEASIBLE)


def test_cp_sat_oracle_agrees():
    cp_model = pytest.importorskip("ortools.sat.python.cp_model")
    for width, height, rects in CASES[:40]:
        if sum(r.area for r in rects) != width * height:
            continue
        expected = _cp_sat_feasible(cp_model, width, height, rects)
        assert solve_dancing_links(width, height, rects).ok == expected, (width, height, rects)
