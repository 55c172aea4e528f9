"""XXH64 content fingerprints for loaded blobs."""

from __future__ import annotations

from typing import TYPE_CHECKING

import xxhash

from .packing.constants import HASH_SEED

if TYPE_CHECKING:  # pragma: no cover
    from .assets import Asset

__all__ = ["content_hash", "hash_asset", "hash_hex"]


def content_hash(data: bytes | bytearray | memoryview, seed: int = HASH_SEED) -> int:
    """Deterministic 64-bit fingerprint of ``data`` (not cryptographic)."""
    return xxhash.xxh64_intdigest(data, seed=seed)


def hash_asset(asset: "Asset") -> int:
    return content_hash(asset.data)


def hash_hex(value: int) -> str:
    return f"{value:016x}"

