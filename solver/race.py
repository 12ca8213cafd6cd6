# solver/race.py
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from config import worker_count
from models import Grid, PackResult, Rect
from progress import ProgressTracker, log_attempt_detail, log_attempt_failure


@dataclass(frozen=True)
class PackJob:
    index: int
    defect: int
    rects: Tuple[Rect, ...]
    pieces: int


@dataclass
class WorkerSlot:
    worker: int
    defect: Optional[int] = None
    job: Optional[PackJob] = None
    grid: Grid = field(default_factory=list)
    attempted: int = 0
    failures: List[str] = field(default_factory=list)

    def offer(self, job: PackJob, grid: Grid) -> None:
        if self.job is None or (job.defect, job.index) < (self.job.defect, self.job.index):
            self.defect = job.defect
            self.job = job
            self.grid = grid


@dataclass
class RaceResult:
    ok: bool
    defect: Optional[int] = None
    grid: Grid = field(default_factory=list)
    job: Optional[PackJob] = None
    attempted: int = 0
    failures: List[str] = field(default_factory=list)


class AtomicCounter:
    def __init__(self, start: int = 0) -> None:
        self._lock = threading.Lock()
        self._value = start

    def next(self) -> int:
        """Return the current value and advance by one."""
        with self._lock:
            value = self._value
            self._value += 1
            return value

    def increment(self) -> int:
        """Advance by one and return the new value."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class RaceContext:
    """State shared by all workers of one race.

    ``done`` is the cancellation token: once set, no worker starts another
    job, but jobs already running are allowed to finish.
    """
    done: threading.Event = field(default_factory=threading.Event)
    next_job: AtomicCounter = field(default_factory=AtomicCounter)
    finished: AtomicCounter = field(default_factory=AtomicCounter)


Packer = Callable[[PackJob], PackResult]


def _worker(
    slot: WorkerSlot,
    jobs: Sequence[PackJob],
    packer: Packer,
    ctx: RaceContext,
    progress: Optional[ProgressTracker],
) -> None:
    while not ctx.done.is_set():
        idx = ctx.next_job.next()
        if idx >= len(jobs):
            return
        job = jobs[idx]
        slot.attempted += 1
        try:
            result = packer(job)
        except Exception as exc:
            # A broken job must not take the other workers' results with it.
            slot.failures.append(f"job {job.index}: {type(exc).__name__}: {exc}")
            log_attempt_failure("Job crashed", worker=slot.worker, job=job.index, defect=job.defect)
            result = None
        finally:
            step = ctx.finished.increment()
            if progress is not None:
                progress.update(step)

        if result is not None and result.ok:
            slot.offer(job, result.grid)
            ctx.done.set()
            log_attempt_detail(
                "Job solved",
                worker=slot.worker,
                job=job.index,
                defect=job.defect,
                pieces=job.pieces,
                nodes=result.nodes,
            )


def reduce_slots(slots: Sequence[WorkerSlot]) -> RaceResult:
    """Pick the lowest-defect success (lowest job index on ties) across all workers."""
    best: Optional[WorkerSlot] = None
    for slot in slots:
        if slot.job is None:
            continue
        if best is None or (slot.job.defect, slot.job.index) < (best.job.defect, best.job.index):
            best = slot
    failures = [f for slot in slots for f in slot.failures]
    attempted = sum(slot.attempted for slot in slots)
    if best is None:
        return RaceResult(False, attempted=attempted, failures=failures)
    return RaceResult(
        True,
        defect=best.defect,
        grid=best.grid,
        job=best.job,
        attempted=attempted,
        failures=failures,
    )


def race(
    jobs: Sequence[PackJob],
    packer: Packer,
    *,
    workers: Optional[int] = None,
    progress: Optional[ProgressTracker] = None,
) -> RaceResult:
    """Run ``packer`` over ``jobs`` on a thread pool and keep the best success.

    Jobs are handed out in list order, so callers sort them by defect first.
    The first success stops new jobs from starting; jobs already in flight
    finish and are included in the reduction.  Every job with a lower index
    than a success has therefore been attempted, which makes the returned
    defect independent of thread timing.
    """
    if not jobs:
        return RaceResult(False)

    n_workers = min(worker_count(workers), len(jobs))
    ctx = RaceContext()
    slots = [WorkerSlot(worker=i) for i in range(n_workers)]
    if progress is not None:
        progress.set_total(len(jobs))

    log_attempt_detail("Race started", jobs=len(jobs), workers=n_workers)

    if n_workers == 1:
        _worker(slots[0], jobs, packer, ctx, progress)
    else:
        with ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix="race-worker") as executor:
            futures = [
                executor.submit(_worker, slot, jobs, packer, ctx, progress)
                for slot in slots
            ]
            for future in futures:
                future.result()

    result = reduce_slots(slots)
    log_attempt_detail(
        "Race finished",
        ok=result.ok,
        defect=result.defect,
        job=result.job.index if result.job else None,
        attempted=result.attempted,
        failures=len(result.failures) or None,
    )
    return result


__all__ = [
    "PackJob",
    "WorkerSlot",
    "RaceResult",
    "RaceContext",
    "AtomicCounter",
    "reduce_slots",
    "race",
]
