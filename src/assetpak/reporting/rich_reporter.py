from __future__ import annotations

import os
from typing import Any, Dict, List

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .base import Reporter, TaskRecord, TaskStatus, get_verbosity

_STATUS_ICON = {
    TaskStatus.SUCCESS: "[green]✔[/]",
    TaskStatus.FAILED: "[red]✖[/]",
    TaskStatus.SKIPPED: "→",
}

_TAGS = {
    "info": "[green]INFO[/]",
    "warning": "[yellow]WARN[/]",
    "error": "[bold red]ERROR[/]",
}


def _transient_from_env() -> bool:
    value = os.getenv("ASSETPAK_PROGRESS_TRANSIENT", "0")
    return value.lower() in ("1", "true", "yes")


class RichReporter(Reporter):
    """Interactive reporter with live progress bars on stderr.

    Set ``ASSETPAK_PROGRESS_TRANSIENT=1`` to clear bars once all tasks finish
    and print the completion lines afterwards in one block.
    """

    supports_progress = True

    def __init__(self, console: Console | None = None):
        super().__init__()
        self.console = console or Console(
            stderr=True, highlight=False, soft_wrap=False
        )
        self._transient = _transient_from_env()
        self.progress: Progress | None = None
        self._bars: Dict[str, TaskID] = {}
        self._deferred: List[str] = []

    def _live(self) -> Progress:
        if self.progress is None:
            self.progress = Progress(
                SpinnerColumn(spinner_name="dots"),
                TextColumn("{task.description}", justify="left"),
                BarColumn(bar_width=None),
                TextColumn("{task.completed}/{task.total}"),
                TimeElapsedColumn(),
                transient=self._transient,
                console=self.console,
                expand=True,
            )
            self.progress.start()
        return self.progress

    def _say(self, kind: str, message: str) -> None:
        self.console.print(f"{_TAGS[kind]}: {escape(message)}")

    @staticmethod
    def _completion_line(rec: TaskRecord) -> str:
        count = f" {rec.progress_text}" if rec.total is not None else ""
        body = f"{rec.name}{count} ({rec.duration:.2f}s){rec.stats_suffix()}"
        return f"{_STATUS_ICON.get(rec.status, '')} {escape(body)}"

    def start_task(
        self, task_id: str, name: str, total: int | None = None, **meta: Any
    ) -> None:
        self._open(task_id, name, total, meta)
        if total is None:
            # Unbounded tasks render as a rule, not a bar.
            self.console.rule(escape(name))
            return
        self._bars[task_id] = self._live().add_task(escape(name), total=total)

    def advance(self, task_id: str, step: int = 1, **meta: Any) -> None:
        rec = self._step(task_id, step, meta)
        bar = self._bars.get(task_id)
        if rec is None or bar is None or self.progress is None:
            return
        item = meta.get("current_item")
        desc = f"{rec.name}: {item}" if item else rec.name
        self.progress.update(bar, completed=rec.completed, description=escape(desc))

    def end_task(
        self,
        task_id: str,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> None:
        rec = self._close(task_id, status, final_meta)
        if rec is None:
            return
        bar = self._bars.pop(task_id, None)
        if bar is not None and self.progress is not None:
            self.progress.update(
                bar, completed=rec.total, description=escape(rec.name)
            )
        line = self._completion_line(rec)
        if self._transient:
            self._deferred.append(line)
        else:
            self.console.print(line)
        if not self._bars:
            self.flush()

    def status(self, message: str, **fields: Any) -> None:
        self._say("info", message)

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        if get_verbosity() >= level:
            self.console.print(f"[cyan]VERB{level}[/]: {escape(message)}")

    def error(self, message: str, **fields: Any) -> None:
        self._say("error", message)

    def warning(self, message: str, **fields: Any) -> None:
        self._say("warning", message)

    def section(self, title: str) -> None:
        self.console.rule(escape(title))

    def flush(self) -> None:
        if self.progress is not None:
            try:
                self.progress.stop()
            finally:
                self.progress = None
        if self._deferred:
            self.console.print("\n".join(self._deferred))
            self._deferred.clear()
