from __future__ import annotations

import sys
from typing import Any

from .base import Reporter, TaskStatus, get_verbosity

ICONS = {
    TaskStatus.SUCCESS: "✔",
    TaskStatus.FAILED: "✖",
    TaskStatus.SKIPPED: "→",
}

# SGR colour per message prefix.
_COLOURS = {"INFO": "32", "WARN": "33", "ERROR": "31", "VERB": "36"}


class PlainReporter(Reporter):
    """Line-oriented reporter writing to stderr, coloured when on a TTY."""

    def __init__(self, stream=None, use_color: bool | None = None):
        super().__init__()
        self.stream = stream or sys.stderr
        if use_color is None:
            use_color = getattr(self.stream, "isatty", lambda: False)()
        self.use_color = use_color

    def _line(self, text: str) -> None:
        self.stream.write(text + "\n")

    def _tagged(self, tag: str, message: str, colour_key: str | None = None) -> None:
        code = _COLOURS[colour_key or tag]
        if self.use_color:
            tag = f"\x1b[{code}m{tag}\x1b[0m"
        self._line(f"{tag}: {message}")

    def start_task(
        self, task_id: str, name: str, total: int | None = None, **meta: Any
    ) -> None:
        self._open(task_id, name, total, meta)

    def advance(self, task_id: str, step: int = 1, **meta: Any) -> None:
        rec = self._step(task_id, step, meta)
        if rec is None or get_verbosity() < 1:
            return
        item = meta.get("current_item") or f"#{rec.completed}"
        self._line(f"   · {rec.name}: {item} ({rec.progress_text})")

    def end_task(
        self,
        task_id: str,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> None:
        rec = self._close(task_id, status, final_meta)
        if rec is None:
            return
        count = f" {rec.progress_text}" if rec.total is not None else ""
        self._line(
            f" {ICONS.get(status, '?')} {rec.name}{count} "
            f"({rec.duration:.2f}s){rec.stats_suffix()}"
        )

    def status(self, message: str, **fields: Any) -> None:
        self._tagged("INFO", message)

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        if get_verbosity() >= level:
            self._tagged(f"VERB{level}", message, "VERB")

    def error(self, message: str, **fields: Any) -> None:
        self._tagged("ERROR", message)

    def warning(self, message: str, **fields: Any) -> None:
        self._tagged("WARN", message)

    def section(self, title: str) -> None:
        self._line(f"\n[{title}]")
