"""Loaded blobs and the name-indexed asset cache.

An :class:`Asset` owns one loaded byte buffer plus its identity and lifecycle
state. An :class:`AssetMap` resolves names to assets, loading them either
from the filesystem or from a backing :class:`~assetpak.pack.PackHandle`, and
holds them in a fixed number of slots.

Frees are immediate (:meth:`AssetMap.remove`) or deferred: a caller marks an
asset with :meth:`Asset.request_free` and the next :meth:`AssetMap.update`
sweep releases it. There is no reference counting.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .logging import get_logger
from .pack import PackHandle
from .packing.constants import DEFAULT_MAP_CAPACITY
from .packing.errors import (
    NotFoundError,
    argument_error,
    capacity_error,
    io_error,
    not_found,
)

__all__ = [
    "AssetSource",
    "AssetState",
    "Asset",
    "AssetMap",
    "asset_get",
    "asset_get_chunk",
    "asset_free",
    "asset_write",
]


class AssetSource(Enum):
    FILESYSTEM = "fs"
    PACK = "pack"


class AssetState(Enum):
    LIVE = "live"
    PENDING_FREE = "pending_free"
    FREED = "freed"


@dataclass(eq=False)
class Asset:
    name: str
    uid: int = 0
    source: AssetSource = AssetSource.FILESYSTEM
    filled: bool = False
    state: AssetState = AssetState.LIVE
    chunk: bool = False
    chunk_start: int = 0
    chunk_length: int = 0
    _buffer: Union[bytes, bytearray, memoryview, None] = field(
        default=None, repr=False
    )
    _length: int = 0

    @property
    def data(self) -> memoryview:
        """The loaded bytes, without any trailing terminator."""
        if self._buffer is None:
            return memoryview(b"")
        return memoryview(self._buffer)[: self._length]

    @property
    def data_length(self) -> int:
        return self._length

    @property
    def fs(self) -> bool:
        return self.source is AssetSource.FILESYSTEM

    @property
    def free_requested(self) -> bool:
        return self.state is AssetState.PENDING_FREE

    def text(self, encoding: str = "utf-8") -> str:
        return bytes(self.data).decode(encoding)

    def request_free(self) -> None:
        """Ask the owning map to release this asset on its next update."""
        if self.state is AssetState.LIVE:
            self.state = AssetState.PENDING_FREE

    def free(self) -> None:
        asset_free(self)


def _file_size(f) -> int:
    return os.fstat(f.fileno()).st_size


def _read_exact(f, size: int, label: str) -> bytearray:
    # One spare byte keeps the content NUL-terminated for text consumers.
    buffer = bytearray(size + 1)
    n = f.readinto(memoryview(buffer)[:size])
    if n != size:
        get_logger().error("incomplete read: %d expected, %d read", size, n)
        raise io_error(
            f"short read of {label}", {"expected": size, "read": n}
        )
    return buffer


def asset_get(path: str | Path) -> Asset:
    """Load a whole filesystem file into a new asset."""
    logger = get_logger()
    if not path:
        logger.error("no file requested")
        raise argument_error("no file path passed")
    try:
        with open(path, "rb") as f:
            size = _file_size(f)
            buffer = _read_exact(f, size, str(path))
    except OSError as exc:
        logger.error("unable to open system file: %s", path)
        raise io_error(
            f"cannot read file: {path}", {"path": str(path)}
        ) from exc
    return Asset(
        name=str(path),
        source=AssetSource.FILESYSTEM,
        filled=True,
        _buffer=buffer,
        _length=size,
    )


def asset_get_chunk(path: str | Path, start: int, length: int) -> Asset:
    """Load ``length`` bytes from ``start``, clamped to the end of the file."""
    logger = get_logger()
    if not path:
        logger.error("no file requested")
        raise argument_error("no file path passed")
    if start < 0 or length < 0:
        raise argument_error(
            "chunk start and length must be non-negative",
            {"start": start, "length": length},
        )
    try:
        with open(path, "rb") as f:
            size = _file_size(f)
            if start > size:
                logger.error(
                    "chunk requested starts out of bounds [%d] of the file [%d]",
                    start,
                    size,
                )
                raise argument_error(
                    f"chunk start {start} beyond end of {path}",
                    {"start": start, "file_size": size},
                )
            clamped = min(length, size - start)
            f.seek(start)
            buffer = _read_exact(f, clamped, f"{path}[{start}:]")
    except OSError as exc:
        logger.error("unable to open system file: %s", path)
        raise io_error(
            f"cannot read file: {path}", {"path": str(path)}
        ) from exc
    return Asset(
        name=str(path),
        source=AssetSource.FILESYSTEM,
        filled=True,
        chunk=True,
        chunk_start=start,
        chunk_length=clamped,
        _buffer=buffer,
        _length=clamped,
    )


def asset_free(asset: Asset) -> None:
    """Release the asset's bytes and clear its identity."""
    asset._buffer = None
    asset._length = 0
    asset.name = ""
    asset.uid = 0
    asset.filled = False
    asset.state = AssetState.FREED


def asset_write(path: str | Path, data: bytes | bytearray | memoryview) -> int:
    """Write raw bytes to a filesystem path, replacing any existing file."""
    logger = get_logger()
    expected = memoryview(data).nbytes
    try:
        with open(path, "wb") as f:
            written = f.write(data)
    except OSError as exc:
        logger.error("unable to write file %s", path)
        raise io_error(
            f"cannot write file: {path}", {"path": str(path)}
        ) from exc
    if written != expected:
        logger.error(
            "mismatched write & data sizes [data_length: %d, write_length: %d]",
            expected,
            written,
        )
        raise io_error(
            f"short write to {path}", {"expected": expected, "written": written}
        )
    return written


AssetKey = Union[str, int, Asset]


class AssetMap:
    """Fixed-capacity, name-indexed cache of loaded assets.

    Without a pack, names are filesystem paths. With a pack, names are entry
    names and every hit is extracted from the pack. Both kinds of loads are
    kept in the slot table, so a repeated ``get`` returns the same asset.
    Pack-sourced assets are released once the backing pack is rewritten.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_MAP_CAPACITY,
        *,
        pack: PackHandle | None = None,
        name: str | None = None,
    ) -> None:
        if capacity <= 0:
            raise argument_error(
                "asset map capacity must be positive", {"capacity": capacity}
            )
        self._slots: List[Optional[Asset]] = [None] * capacity
        self._uid_counter = 0
        self._owns_pack = False
        self.pack = pack
        self.name = name
        self._pack_generation = pack.generation if pack is not None else 0

    @classmethod
    def from_pack(
        cls,
        path: str | Path,
        capacity: int = DEFAULT_MAP_CAPACITY,
        name: str | None = None,
    ) -> "AssetMap":
        amap = cls(capacity, pack=PackHandle.open_file(path), name=name)
        amap._owns_pack = True
        return amap

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def count(self) -> int:
        return sum(1 for a in self._slots if a is not None)

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[Asset]:
        return (a for a in self._slots if a is not None)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def _next_uid(self) -> int:
        self._uid_counter += 1
        return self._uid_counter

    def _place(self, asset: Asset) -> bool:
        for i, slot in enumerate(self._slots):
            if slot is None:
                self._slots[i] = asset
                return True
        return False

    def _slot_of(self, key: AssetKey) -> int:
        for i, slot in enumerate(self._slots):
            if slot is None:
                continue
            if isinstance(key, Asset):
                hit = slot is key
            elif isinstance(key, int):
                hit = slot.uid == key
            else:
                hit = slot.name == key
            if hit:
                return i
        raise not_found(f"no asset {key!r} in map", {"map": self.name})

    def invalidate(self) -> int:
        """Release every pack-sourced asset so the next get re-extracts it.

        Assets loaded from the filesystem or added with :meth:`add` stay.
        Returns the number of evicted assets.
        """
        stale = [
            a for a in self._slots if a is not None and a.source is AssetSource.PACK
        ]
        for asset in stale:
            self.remove(asset)
        if self.pack is not None:
            self._pack_generation = self.pack.generation
        if stale:
            get_logger().debug("evicted %d pack asset(s)", len(stale))
        return len(stale)

    def _sync_pack(self) -> None:
        if self.pack is not None and self.pack.generation != self._pack_generation:
            self.invalidate()

    def lookup(self, name: str) -> Optional[Asset]:
        """Return the already-loaded asset called ``name``, if any."""
        self._sync_pack()
        for asset in self._slots:
            if asset is not None and asset.filled and asset.name == name:
                return asset
        return None

    def _load_from_pack(self, name: str) -> Asset:
        assert self.pack is not None
        index = self.pack.find(name)
        data = self.pack.extract_alloc(index)
        return Asset(
            name=name,
            source=AssetSource.PACK,
            filled=True,
            _buffer=data,
            _length=len(data),
        )

    def get(self, name: str) -> Asset:
        """Return the asset for ``name``, loading it on a cache miss.

        Raises ``NotFoundError`` when a backing pack has no such entry and
        ``PakIOError`` when a filesystem load fails; in both cases the slot
        table is left unchanged.
        """
        cached = self.lookup(name)
        if cached is not None:
            return cached
        if self.pack is not None:
            asset = self._load_from_pack(name)
        else:
            asset = asset_get(name)
        asset.uid = self._next_uid()
        if not self._place(asset):
            get_logger().warning(
                "asset map %s full (%d slots); %s is not tracked",
                self.name or "",
                self.capacity,
                name,
            )
        return asset

    def add(self, asset: Asset) -> int:
        """Track an asset loaded elsewhere; returns its id."""
        if not self._place(asset):
            get_logger().error("no free slot for %s", asset.name)
            raise capacity_error(
                f"asset map is full ({self.capacity} slots)",
                {"map": self.name, "asset": asset.name},
            )
        if not asset.uid:
            asset.uid = self._next_uid()
        return asset.uid

    def remove(self, key: AssetKey) -> None:
        """Release a tracked asset now and empty its slot.

        ``key`` is an asset name, an asset id, or the asset itself.
        """
        try:
            i = self._slot_of(key)
        except NotFoundError:
            get_logger().error("no asset %r on asset map", key)
            raise
        asset = self._slots[i]
        self._slots[i] = None
        asset_free(asset)

    def update(self) -> int:
        """Release every loaded asset that has a pending free request."""
        swept = 0
        for asset in list(self._slots):
            if asset is not None and asset.filled and asset.free_requested:
                self.remove(asset)
                swept += 1
        if swept:
            get_logger().debug("swept %d asset(s)", swept)
        return swept

    def write(self) -> int:
        """Push tracked assets missing from the pack into it, then write."""
        if self.pack is None:
            get_logger().error("no pak file to write to")
            raise argument_error("asset map has no backing pack")
        for asset in self:
            if asset.name and asset.name not in self.pack:
                self.pack.add_memory(asset.name, asset.data)
        written = self.pack.write()
        if written:
            self.invalidate()
        return written

    def free_all(self) -> None:
        for asset in self:
            asset_free(asset)
        self._slots = [None] * len(self._slots)

    def close(self) -> None:
        """Free every asset and close the pack if this map opened it."""
        self.free_all()
        if self.pack is not None and self._owns_pack:
            self.pack.close()
        self.pack = None
