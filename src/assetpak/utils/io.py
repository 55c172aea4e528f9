"""Data-source resolution for pack spec entries."""

from __future__ import annotations
from pathlib import Path
from typing import Any

from .paths import safe_file_path

__all__ = ["DataError", "resolve_entry_source"]

# Inline hex payloads beyond this many digits belong in a file.
MAX_HEX_STRING_LENGTH = 1024 * 1024

_SOURCE_KEYS = ("file", "data", "data_hex")


class DataError(RuntimeError):
    pass


def resolve_entry_source(entry: dict[str, Any], base_dir: Path) -> bytes | Path:
    """Return inline bytes, or the resolved path of a file to stream.

    Exactly one of ``file`` (path relative to ``base_dir``), ``data``
    (UTF-8 text) or ``data_hex`` must be given; a null value counts as
    absent.
    """
    sources = [k for k in _SOURCE_KEYS if entry.get(k) is not None]
    if not sources:
        raise DataError("No data source (file|data|data_hex) provided")
    if len(sources) > 1:
        raise DataError(f"Multiple data sources: {sources}")
    src = sources[0]
    value = entry[src]
    if src == "file":
        if not isinstance(value, str):
            raise DataError("file path must be string")
        try:
            resolved = safe_file_path(base_dir, value)
        except ValueError as e:
            raise DataError(f"file escapes spec directory: {value}") from e
        if not resolved.is_file():
            raise DataError(f"File not found: {resolved}")
        return resolved
    if src == "data_hex":
        if not isinstance(value, str):
            raise DataError("data_hex must be string")
        h = value.replace(" ", "").replace("\n", "")
        if len(h) > MAX_HEX_STRING_LENGTH:
            raise DataError("hex string too long")
        if len(h) % 2:
            raise DataError("hex string must have even length")
        try:
            return bytes.fromhex(h)
        except ValueError as e:
            raise DataError(f"invalid hex: {e}") from e
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, bytes):
        return value
    raise DataError("data must be str or bytes")
