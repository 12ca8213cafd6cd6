# config.py
import os

# ======= Worker / search caps =======
# 0 means "one worker per available CPU".
WORKERS    = int(os.getenv("MONDRIAN_WORKERS", "0"))
NODE_LIMIT = int(os.getenv("MONDRIAN_NODE_LIMIT", "0"))   # 0 = unlimited

# ======= Solver selection =======
SOLVER = os.getenv("MONDRIAN_SOLVER", "top_left").strip().lower()

# ======= Problem defaults =======
# Perfect (defect 0) dissections need at least nine pieces on a square board.
MIN_PIECES   = int(os.getenv("MONDRIAN_MIN_PIECES", "9"))
DEFECT_FLOOR = int(os.getenv("MONDRIAN_DEFECT_FLOOR", "0"))

# ======= Randomised catalog orders (parallel fixed-piece search) =======
_SEED_RAW   = os.getenv("MONDRIAN_RANDOM_SEED", "").strip()
RANDOM_SEED = int(_SEED_RAW) if _SEED_RAW else None

# ======= Debug invariant checks (cover/uncover, skyline restore) =======
CHECK_INVARIANTS = os.getenv("MONDRIAN_CHECK_INVARIANTS", "0") == "1"

# ======= Attempt log =======
LOG_FILE = os.getenv("MONDRIAN_LOG_FILE", "")


class CFG:
    WORKERS    = WORKERS
    NODE_LIMIT = NODE_LIMIT

    SOLVER = SOLVER

    MIN_PIECES   = MIN_PIECES
    DEFECT_FLOOR = DEFECT_FLOOR

    RANDOM_SEED = RANDOM_SEED

    CHECK_INVARIANTS = CHECK_INVARIANTS

    LOG_FILE = LOG_FILE


def worker_count(requested=None) -> int:
    """Resolve a worker count, falling back to ``CFG.WORKERS`` then the CPU count."""
    try:
        n = int(requested) if requested is not None else int(CFG.WORKERS)
    except (TypeError, ValueError):
        n = 0
    if n <= 0:
        n = os.cpu_count() or 1
    return max(1, n)


def node_limit(requested=None):
    """Return the per-call node cap, or ``None`` when unlimited."""
    try:
        n = int(requested) if requested is not None else int(CFG.NODE_LIMIT)
    except (TypeError, ValueError):
        n = 0
    return n if n > 0 else None


__all__ = ["CFG", "worker_count", "node_limit"]
