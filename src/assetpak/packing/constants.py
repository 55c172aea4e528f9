"""On-disk constants of the PACK container."""

from __future__ import annotations

MAGIC = b"PACK"

# "<4sII": magic, entry_count, file_size
HEADER_FORMAT = "<4sII"
HEADER_SIZE = 12

# "<56sII": name slot, absolute offset, size
NAME_SIZE = 56
ENTRY_FORMAT = f"<{NAME_SIZE}sII"
ENTRY_SIZE = 64

# Longest name that still leaves room for the terminating NUL.
NAME_MAX_LENGTH = NAME_SIZE - 1

U32_MAX = 0xFFFFFFFF

# Streaming copy buffer for payload rewrites.
COPY_CHUNK_SIZE = 64 * 1024

# Seed of the XXH64 content fingerprint.
HASH_SEED = 1222

DEFAULT_MAP_CAPACITY = 64


def table_end(count: int) -> int:
    """Offset of the first payload byte for a pack holding ``count`` entries."""
    return HEADER_SIZE + ENTRY_SIZE * count


__all__ = [
    "MAGIC",
    "HEADER_FORMAT",
    "HEADER_SIZE",
    "NAME_SIZE",
    "ENTRY_FORMAT",
    "ENTRY_SIZE",
    "NAME_MAX_LENGTH",
    "U32_MAX",
    "COPY_CHUNK_SIZE",
    "HASH_SEED",
    "DEFAULT_MAP_CAPACITY",
    "table_end",
]
