"""Structural inspection of PACK files.

Public functions:
- inspect_pack(path_or_bytes) -> dict
- validate_pack(info) -> list[str]

Inspection is lenient: it reports what the bytes say and never raises for a
malformed table, so that ``validate_pack`` can describe every problem.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Dict, List

from .constants import ENTRY_SIZE, HEADER_SIZE, table_end
from .packers import unpack_entry, unpack_header

__all__ = ["inspect_pack", "validate_pack"]


def inspect_pack(source: str | Path | bytes | bytearray) -> Dict[str, Any]:
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    else:
        data = Path(source).read_bytes()
    result: Dict[str, Any] = {"file_size": len(data)}
    if len(data) < HEADER_SIZE:
        result["header"] = None
        result["entries"] = []
        return result
    header = unpack_header(data)
    result["header"] = {
        "magic_ok": header.magic_ok,
        "count": header.count,
        "file_size": header.file_size,
    }
    readable = max(0, (len(data) - HEADER_SIZE) // ENTRY_SIZE)
    entries = []
    for i in range(min(header.count, readable)):
        e = unpack_entry(data, HEADER_SIZE + i * ENTRY_SIZE)
        entries.append(
            {"index": i, "name": e.name, "offset": e.offset, "size": e.size}
        )
    result["entries"] = entries
    result["table_complete"] = len(entries) == header.count
    return result


def validate_pack(info: Dict[str, Any]) -> List[str]:
    issues: List[str] = []
    header = info.get("header")
    if header is None:
        return ["Header truncated"]
    if not header["magic_ok"]:
        issues.append("Header magic mismatch")
    if not info.get("table_complete", False):
        issues.append("Entry table truncated")
    file_size = info["file_size"]
    if header["file_size"] != file_size:
        issues.append(
            f"Declared file size {header['file_size']} != actual {file_size}"
        )
    entries = info.get("entries", [])
    expected = table_end(header["count"])
    for e in entries:
        if e["offset"] != expected:
            issues.append(
                f"Entry {e['index']} ({e['name']}) offset {e['offset']} "
                f"breaks contiguity (expected {expected})"
            )
        if e["offset"] + e["size"] > file_size:
            issues.append(f"Entry {e['index']} ({e['name']}) exceeds file size")
        if not e["name"]:
            issues.append(f"Entry {e['index']} has an empty name")
        expected = e["offset"] + e["size"]
    for name, n in Counter(e["name"] for e in entries).items():
        if n > 1 and name:
            issues.append(f"Duplicate entry name {name!r} ({n} times)")
    return issues
