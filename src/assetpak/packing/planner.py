"""Compaction planning: merge the current entry table with the change log.

The planner produces an immutable :class:`WritePlan` that the writer treats as
the single source of truth for the new generation's layout. Sizes of file
sources are taken from the filesystem at planning time; the writer verifies
that exactly that many bytes were copied.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

from ..logging import get_logger
from .changes import (
    AddFromFile,
    AddFromMemory,
    ChangeKind,
    ChangeLog,
    ModifyFromFile,
    ModifyFromMemory,
    Remove,
)
from .constants import U32_MAX, table_end
from .errors import capacity_error, format_error, io_error
from .packers import PackEntry

__all__ = [
    "BaseSource",
    "FileSource",
    "MemorySource",
    "RowSource",
    "WriteRow",
    "WritePlan",
    "source_size",
    "plan_write",
    "to_plan_dict",
]


@dataclass(frozen=True, slots=True)
class BaseSource:
    """Unchanged bytes copied from the current pack file."""

    offset: int


@dataclass(frozen=True, slots=True)
class FileSource:
    path: Path


@dataclass(frozen=True, slots=True)
class MemorySource:
    data: bytes


RowSource = Union[BaseSource, FileSource, MemorySource]


@dataclass(slots=True)
class WriteRow:
    name: str
    size: int
    source: RowSource
    kind: ChangeKind = ChangeKind.KEEP
    offset: int = 0


@dataclass(slots=True)
class WritePlan:
    rows: List[WriteRow]
    count: int
    file_size: int
    removed: int = 0
    added: int = 0
    modified: int = 0
    stats: Dict[str, int] = field(default_factory=dict)

    def entries(self) -> List[PackEntry]:
        return [PackEntry(r.name, r.offset, r.size) for r in self.rows]


def source_size(source: RowSource, *, base_size: int = 0) -> int:
    if isinstance(source, MemorySource):
        return len(source.data)
    if isinstance(source, FileSource):
        try:
            return os.stat(source.path).st_size
        except OSError as exc:
            get_logger().error("unable to size source file %s", source.path)
            raise io_error(
                f"cannot size source file: {source.path}",
                {"path": str(source.path), "errno": exc.errno},
            ) from exc
    return base_size


def _row_from_change(
    change: AddFromFile | AddFromMemory | ModifyFromFile | ModifyFromMemory,
) -> WriteRow:
    if isinstance(change, (AddFromFile, ModifyFromFile)):
        source: RowSource = FileSource(Path(change.path))
    else:
        source = MemorySource(change.data)
    return WriteRow(
        name=change.name,
        size=source_size(source),
        source=source,
        kind=change.kind,
    )


def _expected_count(entries: Sequence[PackEntry], resolved: Dict[str, Any]) -> int:
    # A removal drops every slot carrying the name; duplicates are legal.
    count = sum(1 for e in entries if not isinstance(resolved.get(e.name), Remove))
    existing = {e.name for e in entries}
    for name, change in resolved.items():
        if name not in existing and not isinstance(change, Remove):
            count += 1
    return count


def _assign_offsets(rows: List[WriteRow]) -> int:
    offset = table_end(len(rows))
    for row in rows:
        row.offset = offset
        offset += row.size
    if offset > U32_MAX:
        raise capacity_error(
            "pack would exceed the u32 file size limit",
            {"file_size": offset, "entries": len(rows)},
        )
    return offset


def plan_write(entries: Sequence[PackEntry], changes: ChangeLog) -> WritePlan:
    """Build the ordered write table for the next pack generation.

    Existing entries keep their table order; a removal drops every slot with
    that name and a modification rewrites each such slot with the new source.
    Names not yet in the table are appended in the order they were first
    queued.
    """
    logger = get_logger()
    resolved = changes.resolve()
    expected = _expected_count(entries, resolved)

    rows: List[WriteRow] = []
    removed = modified = added = 0
    seen = set()
    for entry in entries:
        seen.add(entry.name)
        change = resolved.get(entry.name)
        if isinstance(change, Remove):
            removed += 1
            continue
        if change is None:
            rows.append(
                WriteRow(
                    name=entry.name,
                    size=entry.size,
                    source=BaseSource(entry.offset),
                )
            )
            continue
        row = _row_from_change(change)
        # Whatever the queued kind, an existing slot is rewritten in place.
        row.kind = (
            ChangeKind.MODIFY_FILE
            if isinstance(row.source, FileSource)
            else ChangeKind.MODIFY_MEMORY
        )
        rows.append(row)
        modified += 1

    for name, change in resolved.items():
        if name in seen or isinstance(change, Remove):
            continue
        row = _row_from_change(change)
        row.kind = (
            ChangeKind.ADD_FILE
            if isinstance(row.source, FileSource)
            else ChangeKind.ADD_MEMORY
        )
        rows.append(row)
        added += 1

    if len(rows) != expected:
        raise format_error(
            "write table size mismatch",
            {"expected": expected, "actual": len(rows)},
        )
    file_size = _assign_offsets(rows)
    logger.debug(
        "planned %d entries (%d added, %d modified, %d removed) size=%d",
        len(rows),
        added,
        modified,
        removed,
        file_size,
    )
    return WritePlan(
        rows=rows,
        count=len(rows),
        file_size=file_size,
        removed=removed,
        added=added,
        modified=modified,
        stats={
            "payload_bytes": sum(r.size for r in rows),
            "table_bytes": table_end(len(rows)),
        },
    )


def to_plan_dict(plan: WritePlan) -> Dict[str, Any]:
    return {
        "count": plan.count,
        "file_size": plan.file_size,
        "removed": plan.removed,
        "added": plan.added,
        "modified": plan.modified,
        "entries": [
            {
                "name": r.name,
                "offset": r.offset,
                "size": r.size,
                "kind": r.kind.name.lower(),
            }
            for r in plan.rows
        ],
        **plan.stats,
    }
