# solver/subsets.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from models import CandidateSubset, Decision, Rect
from progress import log_attempt_detail


def _record(
    found: Dict[Tuple[Decision, ...], CandidateSubset],
    decisions: List[Decision],
    defect: int,
    total: int,
) -> None:
    mask = tuple(Decision.EXCLUDED if v == Decision.UNDECIDED else v for v in decisions)
    # Same mask twice overwrites; the collection is keyed by the mask alone.
    found.pop(mask, None)
    found[mask] = CandidateSubset(mask=mask, defect=defect, total_area=total)


def search_subsets(
    areas: Sequence[int],
    board_area: int,
    defect_bound: int,
    *,
    defect_floor: int = 0,
) -> List[CandidateSubset]:
    """Every inclusion mask over ``areas`` whose areas sum to ``board_area``
    with ``max - min <= defect_bound``, sorted by defect (discovery order on ties).

    The decision vector is walked left to right, trying ``INCLUDED`` before
    ``EXCLUDED`` at each index.  Runs of excluded entries are collapsed into a
    single loop so the recursion depth is the number of included pieces rather
    than the catalog length.  Two prunes apply on inclusion: running sum above
    ``board_area`` and running defect above ``defect_bound`` (both only grow
    as more pieces join).

    The walk stops at the first fully decided mask whose first included index
    lies after its last excluded index.  Every mask visited afterwards selects
    a strict subset of that mask's pieces, whose sum already fit under
    ``board_area``, so none of them can reach it.

    ``defect_floor`` drops subsets whose defect is below it after the search.
    """
    if board_area <= 0:
        raise ValueError(f"board_area must be positive, got {board_area}")
    if defect_bound < 0:
        raise ValueError(f"defect_bound must be non-negative, got {defect_bound}")
    if any(a <= 0 for a in areas):
        raise ValueError("areas must be positive")

    size = len(areas)
    decisions: List[Decision] = [Decision.UNDECIDED] * size
    found: Dict[Tuple[Decision, ...], CandidateSubset] = {}
    nodes = 0

    def _extend(
        start: int,
        total: int,
        hi: Optional[int],
        lo: Optional[int],
        first_included: Optional[int],
        last_excluded: Optional[int],
    ) -> bool:
        nonlocal nodes
        nodes += 1
        for j in range(start, size):
            decisions[j] = Decision.INCLUDED
            a = areas[j]
            new_total = total + a
            new_hi = a if hi is None else max(hi, a)
            new_lo = a if lo is None else min(lo, a)
            new_first = j if first_included is None else first_included
            new_last_excl = j - 1 if j > start else last_excluded
            if new_total <= board_area and new_hi - new_lo <= defect_bound:
                if new_total == board_area:
                    _record(found, decisions, new_hi - new_lo, new_total)
                if _extend(j + 1, new_total, new_hi, new_lo, new_first, new_last_excl):
                    return True
            decisions[j] = Decision.EXCLUDED

        # Everything from ``start`` on is now excluded: a fully decided mask.
        final_excluded = size - 1 if start < size else last_excluded
        stop = (
            first_included is not None
            and final_excluded is not None
            and first_included > final_excluded
        )
        for j in range(start, size):
            decisions[j] = Decision.UNDECIDED
        return stop

    _extend(0, 0, None, None, None, None)

    ordered = sorted(found.values(), key=lambda c: c.defect)
    if defect_floor > 0:
        ordered = [c for c in ordered if c.defect >= defect_floor]

    log_attempt_detail(
        "Subset search finished",
        catalog=size,
        board_area=board_area,
        defect_bound=defect_bound,
        defect_floor=defect_floor or None,
        nodes=nodes,
        subsets=len(ordered),
    )
    return ordered


def rects_for(subset: CandidateSubset, catalog: Sequence[Rect]) -> List[Rect]:
    return [catalog[i] for i in subset.indices]


__all__ = ["search_subsets", "rects_for"]
