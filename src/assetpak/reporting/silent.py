from __future__ import annotations

from typing import Any, List

from .base import Reporter, TaskStatus


class SilentReporter(Reporter):
    """Prints nothing; used by ``-r silent`` and by the test suite.

    Errors and warnings are still kept in :attr:`errors` so that callers
    running quietly can inspect what went wrong.
    """

    def __init__(self) -> None:
        super().__init__()
        self.errors: List[str] = []

    def start_task(
        self, task_id: str, name: str, total: int | None = None, **meta: Any
    ) -> None:
        self._open(task_id, name, total, meta)

    def advance(self, task_id: str, step: int = 1, **meta: Any) -> None:
        self._step(task_id, step, meta)

    def end_task(
        self,
        task_id: str,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> None:
        rec = self._close(task_id, status, final_meta)
        if rec is not None and status is TaskStatus.FAILED:
            self.errors.append(f"{rec.name}: failed")

    def status(self, message: str, **fields: Any) -> None:
        pass

    def error(self, message: str, **fields: Any) -> None:
        self.errors.append(message)

    warning = error

    def section(self, title: str) -> None:
        pass
