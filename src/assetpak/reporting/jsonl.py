from __future__ import annotations

import json
import re
import sys
from typing import Any, Dict

from .base import Reporter, TaskStatus, get_verbosity

# "Write summary: entries=3 bytes=204" -> summary event of type "write".
_SUMMARY_RE = re.compile(
    r"^(pack|write|check|list|remove|build|inspect) summary:(.*)$", re.IGNORECASE
)


def _summary_fields(message: str) -> Dict[str, str] | None:
    m = _SUMMARY_RE.match(message)
    if m is None:
        return None
    fields = dict(
        token.split("=", 1) for token in m.group(2).split() if "=" in token
    )
    return {"summary_type": m.group(1).lower(), **fields}


class JsonLinesReporter(Reporter):
    """Machine-readable reporter: one JSON object per line.

    Every line carries an ``event`` key (task_start, task_progress, task_end,
    status, section or summary).
    """

    def __init__(self, stream=None):
        super().__init__()
        self.stream = stream or sys.stdout

    def _emit(self, event: str, **payload: Any) -> None:
        payload["event"] = event
        self.stream.write(json.dumps(payload, sort_keys=True, default=str) + "\n")

    def _message(self, level: str, message: str, fields: Dict[str, Any]) -> None:
        self._emit("status", message=message, level=level, **fields)

    def start_task(
        self, task_id: str, name: str, total: int | None = None, **meta: Any
    ) -> None:
        self._open(task_id, name, total, meta)
        self._emit("task_start", id=task_id, name=name, total=total, **meta)

    def advance(self, task_id: str, step: int = 1, **meta: Any) -> None:
        rec = self._step(task_id, step, meta)
        if rec is not None:
            self._emit("task_progress", id=task_id, completed=rec.completed, **meta)

    def end_task(
        self,
        task_id: str,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> None:
        rec = self._close(task_id, status, final_meta)
        if rec is None:
            return
        self._emit(
            "task_end",
            id=task_id,
            status=status.name.lower(),
            completed=rec.completed,
            total=rec.total,
            duration_seconds=rec.duration,
            **rec.meta,
        )

    def status(self, message: str, **fields: Any) -> None:
        summary = _summary_fields(message)
        if summary is not None:
            self._emit("summary", level="info", raw=message, **summary, **fields)
        self._message("info", message, fields)

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        if get_verbosity() >= level:
            self._message(f"verbose{level}", message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._message("error", message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._message("warning", message, fields)

    def section(self, title: str) -> None:
        self._emit("section", title=title)
