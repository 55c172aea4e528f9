"""Binary writer emitting a new pack generation from a :class:`WritePlan`.

The writer does no layout math of its own. It emits header, entry table and
payload strictly in plan order and fails if the stream position ever drifts
from a planned offset. Output goes to a temporary file beside the target,
which then atomically replaces the target. On any failure the temporary
file is removed and the target is left untouched.
"""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional

from ..logging import get_logger
from ..reporting import TaskStatus, get_reporter
from .constants import COPY_CHUNK_SIZE
from .errors import argument_error, format_error, io_error
from .packers import pack_entry, pack_header
from .planner import BaseSource, FileSource, MemorySource, WritePlan, WriteRow

__all__ = ["write_pack", "copy_stream"]


def _expect_position(f: BinaryIO, offset: int, label: str) -> None:
    pos = f.tell()
    if pos != offset:
        raise format_error(
            f"writer position diverged from planned offset ({label})",
            {"position": pos, "planned": offset},
        )


def copy_stream(
    src: BinaryIO,
    dst: BinaryIO,
    size: int,
    *,
    chunk_size: int = COPY_CHUNK_SIZE,
    label: str = "",
) -> int:
    """Copy exactly ``size`` bytes using one reusable ``chunk_size`` buffer."""
    if chunk_size <= 0:
        raise argument_error("copy chunk size must be positive")
    buf = memoryview(bytearray(chunk_size))
    remaining = size
    while remaining:
        n = src.readinto(buf[: min(chunk_size, remaining)])
        if not n:
            break
        dst.write(buf[:n])
        remaining -= n
    copied = size - remaining
    if copied != size:
        get_logger().error(
            "invalid size read for %s, expected %d read %d", label, size, copied
        )
        raise io_error(
            f"short read while copying {label}",
            {"expected": size, "read": copied},
        )
    return copied


def _write_row(
    f: BinaryIO,
    row: WriteRow,
    base: Optional[BinaryIO],
    chunk_size: int,
) -> None:
    source = row.source
    if isinstance(source, MemorySource):
        f.write(source.data)
    elif isinstance(source, FileSource):
        try:
            src = open(source.path, "rb")
        except OSError as exc:
            get_logger().error("unable to open file for read %s", source.path)
            raise io_error(
                f"cannot open source file: {source.path}",
                {"path": str(source.path)},
            ) from exc
        with src:
            copy_stream(src, f, row.size, chunk_size=chunk_size, label=row.name)
    elif isinstance(source, BaseSource):
        if base is None:  # pragma: no cover
            raise format_error("keep row without an open base pack")
        base.seek(source.offset)
        copy_stream(base, f, row.size, chunk_size=chunk_size, label=row.name)
    else:  # pragma: no cover
        raise format_error(f"unknown row source {source!r}")


def _emit(
    f: BinaryIO,
    plan: WritePlan,
    base: Optional[BinaryIO],
    chunk_size: int,
) -> None:
    f.write(pack_header(plan.count, plan.file_size))
    for entry in plan.entries():
        f.write(pack_entry(entry))
    rep = get_reporter()
    rep.start_task("write.payload", "Payload", total=len(plan.rows))
    try:
        for row in plan.rows:
            _expect_position(f, row.offset, row.name)
            _write_row(f, row, base, chunk_size)
            rep.advance("write.payload", current_item=row.name)
        _expect_position(f, plan.file_size, "end of file")
    except Exception:
        rep.end_task("write.payload", TaskStatus.FAILED)
        raise
    rep.end_task(
        "write.payload",
        entries=plan.count,
        bytes=plan.file_size,
        removed=plan.removed,
        added=plan.added,
    )


def _copy_mode(target: Path, tmp_path: Path) -> None:
    # mkstemp files are 0600; the new generation keeps the old file's mode.
    try:
        mode = stat.S_IMODE(os.stat(target).st_mode)
    except FileNotFoundError:
        return
    os.chmod(tmp_path, mode)


def write_pack(
    plan: WritePlan,
    base_path: Path,
    output_path: Path | None = None,
    *,
    chunk_size: int = COPY_CHUNK_SIZE,
) -> int:
    """Write ``plan`` and atomically move it over ``output_path``.

    ``base_path`` is the current generation that Keep rows copy from;
    ``output_path`` defaults to it. Returns the number of bytes written.
    """
    logger = get_logger()
    output_path = Path(output_path or base_path)
    needs_base = any(isinstance(r.source, BaseSource) for r in plan.rows)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            base: Optional[BinaryIO] = None
            if needs_base:
                try:
                    base = open(base_path, "rb")
                except OSError as exc:
                    logger.error(
                        "unable to open %s for intermediate rewrite", base_path
                    )
                    raise io_error(
                        f"cannot open base pack: {base_path}",
                        {"path": str(base_path)},
                    ) from exc
            try:
                _emit(f, plan, base, chunk_size)
            finally:
                if base is not None:
                    base.close()
            f.flush()
            os.fsync(f.fileno())
        _copy_mode(output_path, tmp_path)
        os.replace(tmp_path, output_path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        logger.error("write of %s failed: %s", output_path, exc)
        raise io_error(
            f"cannot write pack: {output_path}", {"path": str(output_path)}
        ) from exc
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.info(
        "Wrote pack %s size=%d entries=%d",
        output_path.name,
        plan.file_size,
        plan.count,
    )
    return plan.file_size
