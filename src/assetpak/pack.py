"""Pack handle: open, query, extract from and mutate PACK archives.

A handle works in exactly one of two modes, fixed when it is opened:

* file mode: the handle keeps the path and the parsed entry table. Every
  extraction reopens the file, so no descriptor is held between calls.
  Mutations are queued in a change log and only reach the disk on
  :meth:`PackHandle.write` or :meth:`PackHandle.close`.
* memory mode: the handle borrows a caller buffer. Extraction returns views
  into that buffer, so it must stay alive (and unchanged) while the handle is
  used. Memory-mode handles are read-only.

Handles are not thread-safe; one owner drives each handle.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .logging import get_logger
from .packing.changes import (
    AddFromFile,
    AddFromMemory,
    ChangeLog,
    ModifyFromFile,
    ModifyFromMemory,
    PendingChange,
    Remove,
)
from .packing.constants import COPY_CHUNK_SIZE, ENTRY_SIZE, HEADER_SIZE
from .packing.errors import (
    FormatError,
    argument_error,
    capacity_error,
    format_error,
    io_error,
    not_found,
)
from .packing.layout import normalize_name
from .packing.packers import PackEntry, unpack_entry_table, unpack_header
from .packing.planner import WritePlan, plan_write
from .packing.writer import write_pack

__all__ = ["PackMode", "PackHandle", "open_file", "open_memory"]


class PackMode(Enum):
    FILE = "file"
    MEMORY = "memory"


class PackHandle:
    def __init__(
        self,
        mode: PackMode,
        entries: List[PackEntry],
        *,
        path: Path | None = None,
        buffer: memoryview | None = None,
        file_size: int = 0,
        chunk_size: int = COPY_CHUNK_SIZE,
    ) -> None:
        self._mode = mode
        self._path = path
        self._buffer = buffer
        self._chunk_size = chunk_size
        self._changes = ChangeLog()
        self._closed = False
        self._generation = 0
        self._set_table(entries, file_size)

    # Construction ----------------------------------------------------------
    @classmethod
    def open_file(
        cls, path: str | Path, *, chunk_size: int = COPY_CHUNK_SIZE
    ) -> "PackHandle":
        """Open ``path`` as a pack, creating an empty file if it is missing.

        An empty file or a header declaring zero entries yields a write-only
        handle: an empty table that is ready for additions.
        """
        p = Path(path)
        if not p.exists():
            get_logger().debug("creating empty pack file %s", p)
            try:
                p.touch()
            except OSError as exc:
                get_logger().error("unable to create pack file %s", p)
                raise io_error(
                    f"cannot create pack file: {p}", {"path": str(p)}
                ) from exc
        entries, file_size = _read_table(p)
        return cls(
            PackMode.FILE,
            entries,
            path=p,
            file_size=file_size,
            chunk_size=chunk_size,
        )

    @classmethod
    def open_memory(cls, buffer: bytes | bytearray | memoryview) -> "PackHandle":
        """Interpret ``buffer`` as a complete pack without copying it."""
        logger = get_logger()
        if buffer is None:
            logger.error("no data passed")
            raise argument_error("no pack buffer passed")
        view = memoryview(buffer).cast("B")
        if not view.nbytes:
            logger.error("no data passed")
            raise argument_error("pack buffer is empty")
        header = unpack_header(view)
        if not header.magic_ok:
            logger.error("invalid pak buffer")
            raise format_error(
                "bad magic in pack buffer", {"magic": header.magic.hex()}
            )
        entries = unpack_entry_table(view, header.count, HEADER_SIZE)
        return cls(
            PackMode.MEMORY, entries, buffer=view, file_size=header.file_size
        )

    # Table -----------------------------------------------------------------
    def _set_table(self, entries: List[PackEntry], file_size: int) -> None:
        self._entries = entries
        self._file_size = file_size
        self._index: Dict[str, int] = {}
        for i, e in enumerate(entries):
            # First match wins, like a front-to-back scan.
            self._index.setdefault(e.name, i)

    def _reload(self) -> None:
        assert self._path is not None
        entries, file_size = _read_table(self._path)
        self._set_table(entries, file_size)

    def _check_open(self) -> None:
        if self._closed:
            raise argument_error("pack handle is closed")

    def _entry(self, index: int) -> PackEntry:
        self._check_open()
        if not 0 <= index < len(self._entries):
            get_logger().error(
                "entry %d outside of pack entry count %d",
                index,
                len(self._entries),
            )
            raise not_found(
                f"no entry at index {index}",
                {"index": index, "count": len(self._entries)},
            )
        return self._entries[index]

    @property
    def mode(self) -> PackMode:
        return self._mode

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def count(self) -> int:
        return len(self._entries)

    @property
    def file_size(self) -> int:
        return self._file_size

    @property
    def write_only(self) -> bool:
        """True while a file-mode pack holds no entries yet."""
        return self._mode is PackMode.FILE and not self._entries

    @property
    def generation(self) -> int:
        """Number of successful writes through this handle."""
        return self._generation

    @property
    def dirty(self) -> bool:
        return self._changes.dirty

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def entries(self) -> Tuple[PackEntry, ...]:
        return tuple(PackEntry(e.name, e.offset, e.size) for e in self._entries)

    @property
    def pending(self) -> Tuple[PendingChange, ...]:
        return tuple(self._changes)

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[PackEntry]:
        return iter(self.entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._index

    def __repr__(self) -> str:
        where = self._path if self._mode is PackMode.FILE else "<memory>"
        return (
            f"<PackHandle {self._mode.value} {where} count={self.count} "
            f"pending={len(self._changes)}>"
        )

    def find(self, name: str) -> int:
        self._check_open()
        try:
            return self._index[normalize_name(name)]
        except KeyError:
            get_logger().debug("no entry named %s", name)
            raise not_found(f"no entry named {name!r}", {"name": name}) from None

    def offset(self, index: int) -> int:
        return self._entries[index].offset if 0 <= index < self.count else 0

    def size(self, index: int) -> int:
        return self._entries[index].size if 0 <= index < self.count else 0

    def name(self, index: int) -> Optional[str]:
        return self._entries[index].name if 0 <= index < self.count else None

    # Extraction ------------------------------------------------------------
    def _memory_range(self, entry: PackEntry) -> memoryview:
        assert self._buffer is not None
        if entry.end > self._buffer.nbytes:
            get_logger().error("entry %s runs past the pack buffer", entry.name)
            raise format_error(
                f"entry {entry.name!r} exceeds pack buffer",
                {"end": entry.end, "buffer": self._buffer.nbytes},
            )
        return self._buffer[entry.offset : entry.end]

    def extract_alloc(self, index: int) -> bytes | memoryview:
        """Return the bytes of entry ``index``.

        File mode returns a freshly read ``bytes``; memory mode returns a
        ``memoryview`` into the borrowed buffer, not an owned copy.
        """
        entry = self._entry(index)
        if self._mode is PackMode.MEMORY:
            return self._memory_range(entry)
        logger = get_logger()
        try:
            with open(self._path, "rb") as f:
                f.seek(entry.offset)
                data = f.read(entry.size)
        except MemoryError as exc:
            logger.error("unable to allocate %d bytes", entry.size)
            raise capacity_error(
                f"cannot allocate {entry.size} bytes", {"name": entry.name}
            ) from exc
        except OSError as exc:
            logger.error("unable to open pak file %s", self._path)
            raise io_error(
                f"cannot read pack file: {self._path}", {"path": str(self._path)}
            ) from exc
        if len(data) != entry.size:
            logger.error(
                "unable to read %d bytes for %s (got %d)",
                entry.size,
                entry.name,
                len(data),
            )
            raise io_error(
                f"short read for entry {entry.name!r}",
                {"expected": entry.size, "read": len(data)},
            )
        return data

    def extract_noalloc(self, index: int, out: bytearray | memoryview) -> int:
        """Read entry ``index`` into the caller-owned ``out`` buffer.

        Returns the number of bytes produced, or 0 when ``out`` is too small
        to hold the entry.
        """
        entry = self._entry(index)
        logger = get_logger()
        view = memoryview(out).cast("B")
        if view.readonly or not view.nbytes:
            logger.error("invalid out buffer parameters passed")
            raise argument_error(
                "destination must be a non-empty writable buffer",
                {"capacity": view.nbytes, "readonly": view.readonly},
            )
        if view.nbytes < entry.size:
            logger.warning(
                "buffer of %d bytes too small for %s (%d bytes)",
                view.nbytes,
                entry.name,
                entry.size,
            )
            return 0
        target = view[: entry.size]
        if self._mode is PackMode.MEMORY:
            target[:] = self._memory_range(entry)
            return entry.size
        try:
            with open(self._path, "rb") as f:
                f.seek(entry.offset)
                n = f.readinto(target)
        except OSError as exc:
            logger.error("unable to open pak file %s", self._path)
            raise io_error(
                f"cannot read pack file: {self._path}", {"path": str(self._path)}
            ) from exc
        if n != entry.size:
            logger.error(
                "unable to read %d bytes for %s (got %d)", entry.size, entry.name, n
            )
            raise io_error(
                f"short read for entry {entry.name!r}",
                {"expected": entry.size, "read": n},
            )
        return n

    def extract(self, name: str) -> bytes | memoryview:
        return self.extract_alloc(self.find(name))

    # Mutation --------------------------------------------------------------
    def _require_file_mode(self, op: str) -> None:
        self._check_open()
        if self._mode is not PackMode.FILE:
            get_logger().error(
                "pak file must be opened in file mode to %s entries", op
            )
            raise argument_error(
                f"cannot {op} entries of a memory-mode pack", {"op": op}
            )

    def _checked_name(self, name: str) -> str:
        if not isinstance(name, str) or not normalize_name(name):
            get_logger().error("no entry name passed")
            raise argument_error("entry name must be a non-empty string")
        return normalize_name(name)

    def _is_known(self, name: str) -> bool:
        if name in self._index:
            return True
        resolved = self._changes.resolve().get(name)
        return resolved is not None and not isinstance(resolved, Remove)

    def add_file(self, name: str, path: str | Path) -> None:
        self._require_file_mode("add")
        self._changes.append(AddFromFile(self._checked_name(name), Path(path)))

    def add_memory(self, name: str, data: bytes | bytearray | memoryview) -> None:
        self._require_file_mode("add")
        if not data:
            get_logger().warning("adding empty entry %s", name)
        self._changes.append(AddFromMemory(self._checked_name(name), bytes(data)))

    def modify_file(self, name: str, path: str | Path) -> None:
        self._require_file_mode("modify")
        key = self._checked_name(name)
        if not self._is_known(key):
            raise not_found(f"no entry named {name!r} to modify", {"name": name})
        self._changes.append(ModifyFromFile(key, Path(path)))

    def modify_memory(
        self, name: str, data: bytes | bytearray | memoryview
    ) -> None:
        self._require_file_mode("modify")
        key = self._checked_name(name)
        if not self._is_known(key):
            raise not_found(f"no entry named {name!r} to modify", {"name": name})
        self._changes.append(ModifyFromMemory(key, bytes(data)))

    def remove(self, name: str) -> None:
        self._require_file_mode("remove")
        key = self._checked_name(name)
        if not self._is_known(key):
            get_logger().error("no entry named %s to remove", name)
            raise not_found(f"no entry named {name!r} to remove", {"name": name})
        self._changes.append(Remove(key))

    def remove_index(self, index: int) -> None:
        self._require_file_mode("remove")
        self.remove(self._entry(index).name)

    # Compaction ------------------------------------------------------------
    def plan(self) -> WritePlan:
        """Dry run: the layout the next :meth:`write` would produce."""
        self._require_file_mode("write")
        return plan_write(self._entries, self._changes)

    def write(self, *, force: bool = False) -> int:
        """Materialize queued changes as a new generation of the pack file.

        The new file replaces the old one atomically and the entry table is
        reloaded from it, so indices from before the call are invalid. On
        failure the original file and the change log are left as they were.
        Returns the number of bytes written (0 when nothing was queued).
        ``force`` rewrites the file even without changes, which turns a
        freshly created empty file into a valid header-only pack.
        """
        self._require_file_mode("write")
        if not self._changes.dirty and not force:
            get_logger().debug("no changes in pack %s", self._path)
            return 0
        plan = plan_write(self._entries, self._changes)
        written = write_pack(plan, self._path, chunk_size=self._chunk_size)
        self._changes.clear()
        self._reload()
        self._generation += 1
        return written

    def close(self) -> None:
        """Flush pending changes (file mode) and release the table."""
        if self._closed:
            return
        if self._mode is PackMode.FILE and self._changes.dirty:
            self.write()
        self._release()

    def discard(self) -> None:
        """Release the handle, dropping any queued changes."""
        if self._changes.dirty:
            get_logger().warning(
                "discarding %d pending change(s) for %s",
                len(self._changes),
                self._path,
            )
        self._release()

    def _release(self) -> None:
        self._changes.clear()
        self._set_table([], 0)
        # Borrowed buffer: drop the reference, never release the caller's bytes.
        self._buffer = None
        self._closed = True

    def __enter__(self) -> "PackHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.discard()


def _read_table(path: Path) -> Tuple[List[PackEntry], int]:
    logger = get_logger()
    try:
        with path.open("rb") as f:
            head = f.read(HEADER_SIZE)
            if not head:
                logger.debug("empty pak file %s", path)
                return [], 0
            header = unpack_header(head)
            if not header.magic_ok:
                logger.error("invalid pak file format %s", path)
                raise format_error(
                    f"bad magic in {path}",
                    {"path": str(path), "magic": header.magic.hex()},
                )
            if header.count == 0:
                logger.debug("empty pak file %s", path)
                return [], header.file_size
            table = f.read(header.count * ENTRY_SIZE)
    except OSError as exc:
        logger.error("unable to open file %s", path)
        raise io_error(f"cannot read pack file: {path}", {"path": str(path)}) from exc
    try:
        entries = unpack_entry_table(table, header.count)
    except FormatError:
        logger.error("invalid read of entries: %s", path)
        raise
    return entries, header.file_size


def open_file(path: str | Path, **kwargs) -> PackHandle:
    return PackHandle.open_file(path, **kwargs)


def open_memory(buffer: bytes | bytearray | memoryview) -> PackHandle:
    return PackHandle.open_memory(buffer)
