"""Pending mutations queued against a file-mode pack.

Changes are keyed by entry *name*: indices shift on every compaction, names
do not. When several changes target the same name, the last one queued wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import ClassVar, Dict, Iterator, List, Union

from .layout import normalize_name

__all__ = [
    "ChangeKind",
    "AddFromFile",
    "AddFromMemory",
    "ModifyFromFile",
    "ModifyFromMemory",
    "Remove",
    "PendingChange",
    "ChangeLog",
]


class ChangeKind(IntEnum):
    KEEP = 0
    ADD_FILE = 1
    ADD_MEMORY = 2
    MODIFY_FILE = 3
    MODIFY_MEMORY = 4
    REMOVE = 5


@dataclass(frozen=True, slots=True)
class AddFromFile:
    kind: ClassVar[ChangeKind] = ChangeKind.ADD_FILE
    name: str
    path: Path


@dataclass(frozen=True, slots=True)
class AddFromMemory:
    kind: ClassVar[ChangeKind] = ChangeKind.ADD_MEMORY
    name: str
    data: bytes


@dataclass(frozen=True, slots=True)
class ModifyFromFile:
    kind: ClassVar[ChangeKind] = ChangeKind.MODIFY_FILE
    name: str
    path: Path


@dataclass(frozen=True, slots=True)
class ModifyFromMemory:
    kind: ClassVar[ChangeKind] = ChangeKind.MODIFY_MEMORY
    name: str
    data: bytes


@dataclass(frozen=True, slots=True)
class Remove:
    kind: ClassVar[ChangeKind] = ChangeKind.REMOVE
    name: str


PendingChange = Union[
    AddFromFile, AddFromMemory, ModifyFromFile, ModifyFromMemory, Remove
]


@dataclass(slots=True)
class ChangeLog:
    """Ordered list of not-yet-applied changes."""

    changes: List[PendingChange] = field(default_factory=list)

    def append(self, change: PendingChange) -> None:
        if change.name != normalize_name(change.name):
            raise ValueError(f"change name is not normalized: {change.name!r}")
        self.changes.append(change)

    def clear(self) -> None:
        self.changes.clear()

    @property
    def dirty(self) -> bool:
        return bool(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self) -> Iterator[PendingChange]:
        return iter(self.changes)

    def resolve(self) -> Dict[str, PendingChange]:
        """Collapse the log to the effective change per name.

        Keys keep the order in which each name was first touched, so
        appended entries land in the order they were first added.
        """
        out: Dict[str, PendingChange] = {}
        for change in self.changes:
            out[change.name] = change
        return out
