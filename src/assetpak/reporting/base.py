from __future__ import annotations

import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, Optional

__all__ = [
    "TaskStatus",
    "TaskRecord",
    "Reporter",
    "set_reporter",
    "get_reporter",
    "set_verbosity",
    "get_verbosity",
    "section",
    "task",
    "STAT_KEYS",
]

# Task metadata keys rendered as "[key=value ...]" on task completion.
STAT_KEYS = ("entries", "bytes", "removed", "added")


class TaskStatus(Enum):
    RUNNING = auto()
    SUCCESS = auto()
    FAILED = auto()
    SKIPPED = auto()


@dataclass(slots=True)
class TaskRecord:
    task_id: str
    name: str
    total: Optional[int] = None
    completed: int = 0
    status: TaskStatus = TaskStatus.RUNNING
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        if self.end_time is None:
            return 0.0
        return self.end_time - self.start_time

    @property
    def progress_text(self) -> str:
        total = "?" if self.total is None else self.total
        return f"{self.completed}/{total}"

    def stats_suffix(self) -> str:
        stats = [f"{k}={self.meta[k]}" for k in STAT_KEYS if k in self.meta]
        return f" [{' '.join(stats)}]" if stats else ""


_verbosity = 0


def set_verbosity(level: int) -> None:
    global _verbosity
    _verbosity = max(0, level)


def get_verbosity() -> int:
    return _verbosity


class Reporter:
    """Sink for user-facing progress and messages.

    Library code never prints; it talks to whichever reporter is active.
    The base class keeps the task records so that backends only render.
    """

    supports_progress: bool = False

    def __init__(self) -> None:
        self._tasks: Dict[str, TaskRecord] = {}

    def _open(
        self, task_id: str, name: str, total: int | None, meta: Dict[str, Any]
    ) -> TaskRecord:
        rec = TaskRecord(task_id, name, total, meta=dict(meta))
        self._tasks[task_id] = rec
        return rec

    def _step(
        self, task_id: str, step: int, meta: Dict[str, Any]
    ) -> TaskRecord | None:
        rec = self._tasks.get(task_id)
        if rec is not None:
            rec.completed += step
            rec.meta.update(meta)
        return rec

    def _close(
        self, task_id: str, status: TaskStatus, meta: Dict[str, Any]
    ) -> TaskRecord | None:
        rec = self._tasks.pop(task_id, None)
        if rec is not None:
            rec.status = status
            rec.end_time = time.time()
            rec.meta.update(meta)
        return rec

    def start_task(
        self, task_id: str, name: str, total: int | None = None, **meta: Any
    ) -> None:
        raise NotImplementedError

    def advance(self, task_id: str, step: int = 1, **meta: Any) -> None:
        raise NotImplementedError

    def end_task(
        self,
        task_id: str,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> None:
        raise NotImplementedError

    def status(self, message: str, **fields: Any) -> None:
        raise NotImplementedError

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        pass

    def error(self, message: str, **fields: Any) -> None:
        raise NotImplementedError

    def warning(self, message: str, **fields: Any) -> None:
        self.status(message, **fields)

    def section(self, title: str) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        pass


_active: Reporter | None = None


def set_reporter(rep: Reporter) -> None:
    global _active
    _active = rep


def get_reporter() -> Reporter:
    """The active reporter; a plain stderr reporter until the CLI picks one."""
    global _active
    if _active is None:
        from .plain import PlainReporter  # deferred: plain imports this module

        _active = PlainReporter(stream=sys.stderr)
    return _active


@contextmanager
def section(title: str) -> Iterator[None]:
    get_reporter().section(title)
    yield


@contextmanager
def task(
    task_id: str, name: str, total: int | None = None, **meta: Any
) -> Iterator[Reporter]:
    """Run the body as a reported task, ending it FAILED if the body raises."""
    rep = get_reporter()
    rep.start_task(task_id, name, total, **meta)
    try:
        yield rep
    except Exception:
        rep.end_task(task_id, TaskStatus.FAILED)
        raise
    rep.end_task(task_id, TaskStatus.SUCCESS)
