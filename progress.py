from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

from config import CFG

# ------------------------------
# Attempt log
# ------------------------------


def _log_file_path() -> Path:
    configured = (CFG.LOG_FILE or "").strip()
    if configured:
        return Path(configured)
    return Path(__file__).resolve().parent / "logs" / "solver_attempts.log"


def _init_logger() -> logging.Logger:
    logger = logging.getLogger("mondrian.attempt_log")
    if logger.handlers:
        return logger

    log_path = _log_file_path()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    except OSError:
        # No writable log location; solving carries on without the attempt log.
        logger.handlers.clear()
    return logger


ATTEMPT_LOGGER = _init_logger()


def _log_enabled() -> bool:
    return bool(ATTEMPT_LOGGER.handlers)


def _fmt_seconds(seconds: Optional[float]) -> Optional[str]:
    if seconds is None:
        return None
    try:
        return f"{float(seconds):.2f}s"
    except (TypeError, ValueError):
        return None


def _format_event(event: str, **fields: Any) -> str:
    extras = [
        f"{key}={value}"
        for key, value in fields.items()
        if value is not None and value != ""
    ]
    if extras:
        return f"{event} | {' '.join(extras)}"
    return event


def log_attempt_detail(event: str, **fields: Any) -> None:
    """Write one ``event | key=value ...`` line to the attempt log."""
    if not _log_enabled():
        return
    ATTEMPT_LOGGER.info("%s", _format_event(event, **fields))


def log_attempt_failure(event: str, **fields: Any) -> None:
    """Like :func:`log_attempt_detail`, at error level with the active traceback."""
    if not _log_enabled():
        return
    ATTEMPT_LOGGER.error("%s", _format_event(event, **fields), exc_info=True)


# ------------------------------
# Progress sink
# ------------------------------

def _fmt_elapsed(seconds: float) -> str:
    seconds = max(0.0, float(seconds))
    if seconds < 60:
        return f"{int(seconds)}s"
    m, s = divmod(int(seconds), 60)
    if m < 60:
        return f"{m}m {s}s"
    h, m = divmod(m, 60)
    return f"{h}h {m}m"


class ProgressTracker:
    """Thread-safe progress sink for one solving run.

    Workers report completed step counts through :meth:`update`.  Counts only
    ever move forward: a late report of an older count is ignored, so readers
    of :meth:`snapshot` always see a monotonically increasing ``completed``.
    Phase changes and the final outcome are written to the attempt log.
    """

    def __init__(self, total: int = 0, *, label: str = "") -> None:
        self._lock = threading.Lock()
        self._run_id = 0
        self._state: Dict[str, Any] = {}
        self.reset(total, label=label)

    def reset(self, total: int = 0, *, label: str = "") -> None:
        with self._lock:
            self._run_id += 1
            self._state = {
                "status": "Idle",      # Idle | Solving | Solved | Exhausted
                "label": label,
                "phase": "",
                "phase_start": None,
                "total": max(0, int(total)),
                "completed": 0,
                "percent": 0.0,
                "elapsed_start": None,
                "elapsed": 0.0,
                "message": "",
                "done": False,
                "ok": None,
                "run_id": self._run_id,
            }

    def _touch_elapsed_locked(self) -> None:
        t0 = self._state.get("elapsed_start")
        if t0 is not None:
            self._state["elapsed"] = time.time() - float(t0)

    def _recompute_percent_locked(self) -> None:
        total = self._state["total"]
        if total > 0:
            pct = 100.0 * self._state["completed"] / total
            self._state["percent"] = max(0.0, min(100.0, pct))

    def start(self) -> None:
        with self._lock:
            self._state["status"] = "Solving"
            self._state["elapsed_start"] = time.time()
            self._state["elapsed"] = 0.0
            label = self._state["label"]
            total = self._state["total"]
        log_attempt_detail("Run started", label=label, total=total)

    def set_phase(self, phase: Any) -> None:
        phase_str = "" if phase is None else str(phase)
        with self._lock:
            prev = self._state["phase"]
            if phase_str == prev:
                return
            now = time.time()
            started = self._state["phase_start"]
            self._state["phase"] = phase_str
            self._state["phase_start"] = now
        if prev and started is not None:
            log_attempt_detail("Phase finished", phase=prev, duration=_fmt_seconds(now - started))
        if phase_str:
            log_attempt_detail("Phase started", phase=phase_str)

    def set_total(self, total: Any) -> None:
        try:
            value = int(total)
        except (TypeError, ValueError):
            value = 0
        with self._lock:
            self._state["total"] = max(0, value)
            self._recompute_percent_locked()

    def update(self, completed: Any) -> None:
        try:
            value = int(completed)
        except (TypeError, ValueError):
            return
        with self._lock:
            if value <= self._state["completed"]:
                return
            self._state["completed"] = value
            self._recompute_percent_locked()
            self._touch_elapsed_locked()

    def set_message(self, msg: Any) -> None:
        with self._lock:
            self._state["message"] = "" if msg is None else str(msg)

    def set_done(self, ok: bool, *, reason: Any = None) -> None:
        with self._lock:
            self._touch_elapsed_locked()
            self._state["status"] = "Solved" if ok else "Exhausted"
            self._state["ok"] = bool(ok)
            self._state["done"] = True
            self._state["percent"] = 100.0
            if reason is not None:
                self._state["message"] = str(reason)
            elapsed = self._state["elapsed"]
            completed = self._state["completed"]
            total = self._state["total"]
        log_attempt_detail(
            "Run finished",
            ok=bool(ok),
            completed=f"{completed}/{total}",
            duration=_fmt_seconds(elapsed),
            reason=reason,
        )

    @property
    def completed(self) -> int:
        with self._lock:
            return int(self._state["completed"])

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            self._touch_elapsed_locked()
            snap = {k: v for k, v in self._state.items() if k != "phase_start"}
        snap["elapsed_str"] = _fmt_elapsed(snap["elapsed"])
        return snap


__all__ = [
    "ATTEMPT_LOGGER",
    "ProgressTracker",
    "log_attempt_detail",
    "log_attempt_failure",
]
