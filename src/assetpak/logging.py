"""Logging utilities for assetpak.

Library modules log through a single named logger. The CLI installs a handler
that forwards every record to the active reporter, so diagnostics and
progress share one output channel.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from .reporting import get_reporter, get_verbosity

_LOGGER_NAME = "assetpak"
_STEP_PREFIX = "  ->"

__all__ = [
    "get_logger",
    "configure_logging",
    "ReporterHandler",
    "section",
    "step",
]


def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)


class ReporterHandler(logging.Handler):
    """Route log records to the active reporter by severity."""

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401
        rep = get_reporter()
        msg = self.format(record)
        if record.levelno >= logging.ERROR:
            rep.error(msg)
        elif record.levelno >= logging.WARNING:
            rep.warning(msg)
        elif record.levelno >= logging.INFO:
            rep.status(msg)
        else:
            rep.verbose(msg)


def configure_logging(verbosity: int = 0) -> None:
    logger = get_logger()
    logger.setLevel(logging.DEBUG if verbosity >= 1 else logging.INFO)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    handler = ReporterHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def step(message: str) -> None:
    get_reporter().status(f"{_STEP_PREFIX} {message}")


@contextmanager
def section(title: str) -> Iterator[logging.Logger]:
    logger = get_logger()
    get_reporter().section(title)
    try:
        yield logger
    finally:
        if get_verbosity() >= 2:
            logger.debug("end section: %s", title)
