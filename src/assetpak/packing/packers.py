"""Pure binary packing functions for the PACK header and entry table.

All multi-byte fields are little-endian on disk. ``struct``'s ``<`` prefix
performs the byte swap on big-endian hosts and is a pass-through otherwise.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import List

from .constants import (
    ENTRY_FORMAT,
    ENTRY_SIZE,
    HEADER_FORMAT,
    HEADER_SIZE,
    MAGIC,
    NAME_SIZE,
    U32_MAX,
)
from .errors import capacity_error, format_error
from .layout import pack_name_string, unpack_name_string

__all__ = [
    "PackHeader",
    "PackEntry",
    "pack_header",
    "unpack_header",
    "pack_entry",
    "unpack_entry",
    "unpack_entry_table",
]


@dataclass(slots=True)
class PackHeader:
    magic: bytes
    count: int
    file_size: int

    @property
    def magic_ok(self) -> bool:
        return self.magic == MAGIC


@dataclass(slots=True)
class PackEntry:
    name: str
    offset: int
    size: int

    @property
    def end(self) -> int:
        return self.offset + self.size


def _check_u32(label: str, value: int) -> None:
    if value < 0 or value > U32_MAX:
        raise capacity_error(
            f"{label} does not fit in u32", {"value": value}
        )


def pack_header(count: int, file_size: int) -> bytes:
    _check_u32("entry count", count)
    _check_u32("file size", file_size)
    out = struct.pack(HEADER_FORMAT, MAGIC, count, file_size)
    if len(out) != HEADER_SIZE:  # pragma: no cover
        raise RuntimeError(f"Header size mismatch: {len(out)}")
    return out


def unpack_header(data: bytes | memoryview) -> PackHeader:
    if len(data) < HEADER_SIZE:
        raise format_error(
            "truncated header", {"have": len(data), "need": HEADER_SIZE}
        )
    magic, count, file_size = struct.unpack_from(HEADER_FORMAT, data, 0)
    return PackHeader(magic=bytes(magic), count=count, file_size=file_size)


def pack_entry(entry: PackEntry) -> bytes:
    _check_u32("entry offset", entry.offset)
    _check_u32("entry size", entry.size)
    out = struct.pack(
        ENTRY_FORMAT,
        pack_name_string(entry.name, NAME_SIZE),
        entry.offset,
        entry.size,
    )
    if len(out) != ENTRY_SIZE:  # pragma: no cover
        raise RuntimeError(f"Entry record size mismatch: {len(out)}")
    return out


def unpack_entry(data: bytes | memoryview, offset: int = 0) -> PackEntry:
    raw_name, entry_offset, size = struct.unpack_from(ENTRY_FORMAT, data, offset)
    return PackEntry(unpack_name_string(raw_name), entry_offset, size)


def unpack_entry_table(
    data: bytes | memoryview, count: int, start: int = 0
) -> List[PackEntry]:
    need = start + count * ENTRY_SIZE
    if len(data) < need:
        raise format_error(
            "truncated entry table",
            {"count": count, "have": len(data) - start, "need": need - start},
        )
    return [unpack_entry(data, start + i * ENTRY_SIZE) for i in range(count)]
