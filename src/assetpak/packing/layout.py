"""Fixed-width name slot helpers."""

from __future__ import annotations

from .constants import NAME_SIZE

__all__ = ["normalize_name", "pack_name_string", "unpack_name_string"]


def _truncated(name: str, size: int) -> bytes:
    # Cut on a byte boundary, then drop any partial trailing UTF-8 sequence.
    raw = name.encode("utf-8")[: size - 1]
    return raw.decode("utf-8", errors="ignore").encode("utf-8")


def normalize_name(name: str, size: int = NAME_SIZE) -> str:
    """Return ``name`` as it will read back from a ``size``-byte slot.

    Everything from the first NUL on is dropped, mirroring C string
    comparison of the slot contents.
    """
    return _truncated(name.split("\x00", 1)[0], size).decode("utf-8")


def pack_name_string(name: str, size: int = NAME_SIZE) -> bytes:
    name_bytes = _truncated(name.split("\x00", 1)[0], size)
    return name_bytes + b"\x00" * (size - len(name_bytes))


def unpack_name_string(raw: bytes) -> str:
    return bytes(raw).split(b"\x00", 1)[0].decode("utf-8", errors="replace")
