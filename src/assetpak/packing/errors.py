"""Error taxonomy for pack and asset operations."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

E_FORMAT = "E_FORMAT"
E_IO = "E_IO"
E_NOT_FOUND = "E_NOT_FOUND"
E_ARGUMENT = "E_ARGUMENT"
E_CAPACITY = "E_CAPACITY"


@dataclass
class PakError(Exception):
    code: str
    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}" + (
            f" | ctx={self.context}" if self.context else ""
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context or {},
        }


class FormatError(PakError):
    """Bad magic or a header/table that ends early."""


class PakIOError(PakError):
    """Open/read/write/seek failure or a short transfer."""


class NotFoundError(PakError):
    """Entry name or index is absent."""


class ArgumentError(PakError):
    """Empty input, bad range, or an operation the handle mode forbids."""


class CapacityError(PakError):
    """A fixed-capacity table is full or a u32 field would overflow."""


def format_error(
    message: str, context: Optional[Dict[str, Any]] = None
) -> FormatError:
    return FormatError(code=E_FORMAT, message=message, context=context)


def io_error(
    message: str, context: Optional[Dict[str, Any]] = None
) -> PakIOError:
    return PakIOError(code=E_IO, message=message, context=context)


def not_found(
    message: str, context: Optional[Dict[str, Any]] = None
) -> NotFoundError:
    return NotFoundError(code=E_NOT_FOUND, message=message, context=context)


def argument_error(
    message: str, context: Optional[Dict[str, Any]] = None
) -> ArgumentError:
    return ArgumentError(code=E_ARGUMENT, message=message, context=context)


def capacity_error(
    message: str, context: Optional[Dict[str, Any]] = None
) -> CapacityError:
    return CapacityError(code=E_CAPACITY, message=message, context=context)


__all__ = [
    "PakError",
    "FormatError",
    "PakIOError",
    "NotFoundError",
    "ArgumentError",
    "CapacityError",
    "format_error",
    "io_error",
    "not_found",
    "argument_error",
    "capacity_error",
    "E_FORMAT",
    "E_IO",
    "E_NOT_FOUND",
    "E_ARGUMENT",
    "E_CAPACITY",
]
