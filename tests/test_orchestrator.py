import pytest

from catalog import complete_rotations
from models import Rect
from progress import ProgressTracker
from solver import orchestrator
from solver.orchestrator import (
    NO_COMBINATIONS,
    NO_SOLUTION,
    make_packer,
    solve_defect,
    solve_perfect,
    solve_pieces,
)
from solver.race import PackJob
from solver.verify import grid_defect, is_exact_tiling


@pytest.mark.parametrize("solver", ["top_left", "dancing_links"])
def test_three_by_three_minimum_defect(solver):
    res = solve_defect(3, 3, solver=solver, workers=1)
    assert res.ok
    assert res.defect == 2
    assert {r.key for r in res.rects} == {(2, 2), (1, 3), (1, 2)}
    assert is_exact_tiling(res.grid, res.rects)
    assert grid_defect(res.grid) == 2


@pytest.mark.parametrize("solver", ["top_left", "dancing_links"])
def test_four_by_four_minimum_defect(solver):
    res = solve_defect(4, 6, solver=solver, workers=2)
    assert res.ok
    assert res.defect == 4
    assert is_exact_tiling(res.grid, res.rects)
    assert res.candidates > 1


def test_five_by_five_independent_of_worker_count():
    one = solve_defect(5, 6, workers=1)
    many = solve_defect(5, 6, workers=4)
    assert one.defect == many.defect == 4
    assert is_exact_tiling(many.grid, many.rects)


def test_rectangular_board():
    res = solve_defect(3, 4, m=2, workers=1)
    assert res.ok
    assert res.defect == 2
    assert len(res.grid) == 2
    assert all(len(row) == 3 for row in res.grid)


@pytest.mark.parametrize("n, d", [(3, 0), (4, 2), (4, 3)])
def test_no_combinations(n, d):
    res = solve_defect(n, d)
    assert not res.ok
    assert res.reason == NO_COMBINATIONS
    assert res.grid == []


def test_defect_floor_skips_smaller_defects():
    res = solve_defect(3, 3, defect_floor=3, workers=1)
    assert res.ok
    assert res.defect == 3
    assert {r.key for r in res.rects} == {(2, 3), (1, 3)}


def test_defect_floor_from_config(monkeypatch):
    monkeypatch.setattr(orchestrator.CFG, "DEFECT_FLOOR", 3)
    assert solve_defect(3, 3, workers=1).defect == 3


def test_unknown_solver_is_rejected():
    with pytest.raises(ValueError, match="Unknown solver"):
        solve_defect(3, 3, solver="milp")
    with pytest.raises(ValueError):
        solve_defect(3, -1)
    with pytest.raises(ValueError):
        solve_defect(0, 3)


def test_solver_from_config(monkeypatch):
    monkeypatch.setattr(orchestrator.CFG, "SOLVER", "dancing_links")
    res = solve_defect(3, 3, workers=1)
    assert res.defect == 2


def test_make_packer_normalises_name():
    pack = make_packer("Dancing-Links", 3, 3)
    job = PackJob(index=0, defect=2, rects=(Rect(2, 2), Rect(1, 3), Rect(1, 2)), pieces=3)
    assert pack(job).ok


def test_packing_failures_report_no_solution(monkeypatch):
    monkeypatch.setattr(
        orchestrator,
        "make_packer",
        lambda solver, width, height: (lambda job: orchestrator.PackResult(False, reason="exhausted")),
    )
    res = solve_defect(3, 3, workers=1)
    assert not res.ok
    assert res.reason == NO_SOLUTION
    assert res.attempted == res.candidates == 2


def test_progress_reflects_outcome():
    tracker = ProgressTracker(label="3x3")
    res = solve_defect(3, 3, workers=1, progress=tracker)
    snap = tracker.snapshot()
    assert res.ok
    assert snap["done"] is True
    assert snap["status"] == "Solved"
    assert snap["phase"] == "packing"
    assert snap["completed"] == res.attempted


def test_progress_on_no_combinations():
    tracker = ProgressTracker()
    solve_defect(3, 0, progress=tracker)
    snap = tracker.snapshot()
    assert snap["status"] == "Exhausted"
    assert snap["message"] == NO_COMBINATIONS


def test_perfect_small_square_has_no_combinations():
    res = solve_perfect(4, min_pieces=2)
    assert not res.ok
    assert res.reason == NO_COMBINATIONS


def test_perfect_runs_each_piece_count(monkeypatch):
    catalog = complete_rotations([Rect(1, 4), Rect(3, 2), Rect(3, 2)])
    monkeypatch.setattr(
        orchestrator,
        "perfect_combinations",
        lambda width, height, min_pieces: [(3, catalog)],
    )
    res = solve_perfect(4, min_pieces=3, workers=1)
    assert res.ok
    assert res.defect == 0
    assert res.rects == [Rect(1, 4), Rect(2, 3)]
    assert is_exact_tiling(res.grid)


def test_pieces_rejects_impossible_counts():
    assert solve_pieces(4, 3).reason == NO_COMBINATIONS
    assert solve_pieces(4, 4).reason == NO_COMBINATIONS
    with pytest.raises(ValueError):
        solve_pieces(4, 0)


def test_pieces_races_shuffled_orders(monkeypatch):
    seen = []

    def _catalog(area, width, height):
        seen.append((area, width, height))
        return complete_rotations([Rect(1, 4), Rect(1, 4), Rect(1, 4)])

    monkeypatch.setattr(orchestrator, "divisor_catalog", _catalog)
    res = solve_pieces(4, 3, m=3, workers=3, seed=11)
    assert seen == [(4, 4, 3)]
    assert res.ok
    assert res.defect == 0
    assert res.rects == [Rect(1, 4)]
    assert is_exact_tiling(res.grid)


def test_jobs_carry_piece_count_of_their_subset(monkeypatch):
    seen = []

    def _packer(solver, width, height):
        def _pack(job):
            seen.append((job.pieces, len(job.rects)))
            return orchestrator.PackResult(False, reason="exhausted")
        return _pack

    monkeypatch.setattr(orchestrator, "make_packer", _packer)
    solve_defect(3, 3, workers=1)
    assert sorted(seen) == [(2, 2), (3, 3)]
