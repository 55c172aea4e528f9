"""Pluggable progress/message reporters (plain, rich, JSON lines, silent)."""

from .base import (
    Reporter,
    TaskRecord,
    TaskStatus,
    get_reporter,
    get_verbosity,
    section,
    set_reporter,
    set_verbosity,
    task,
)
from .jsonl import JsonLinesReporter
from .plain import PlainReporter
from .rich_reporter import RichReporter
from .silent import SilentReporter

__all__ = [
    "Reporter",
    "TaskRecord",
    "TaskStatus",
    "get_reporter",
    "set_reporter",
    "get_verbosity",
    "set_verbosity",
    "section",
    "task",
    "PlainReporter",
    "RichReporter",
    "JsonLinesReporter",
    "SilentReporter",
]
