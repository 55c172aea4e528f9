"""High-level API for assetpak.

Thin conveniences over :mod:`assetpak.pack` and :mod:`assetpak.assets` used
by the CLI and by embedding applications.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .assets import asset_free, asset_get
from .hashing import hash_asset, hash_hex
from .logging import get_logger
from .pack import PackHandle
from .packing.constants import COPY_CHUNK_SIZE
from .packing.errors import argument_error
from .packing.inspector import (
    inspect_pack as _inspect_pack_impl,
    validate_pack as _validate_pack_impl,
)
from .reporting import get_reporter, task
from .spec.loader import load_spec

__all__ = [
    "PackOptions",
    "BuildOptions",
    "BuildResult",
    "open_pack",
    "build_pack",
    "inspect_pack",
    "validate_pack",
    "checksum",
]


@dataclass(slots=True)
class PackOptions:
    # Size of the reusable buffer for streaming payload copies during write.
    copy_chunk_size: int = COPY_CHUNK_SIZE


@dataclass(slots=True)
class BuildOptions:
    input_spec: Path
    output_path: Path
    # Replace an existing output instead of refusing to build.
    force: bool = False
    pack: PackOptions | None = None


@dataclass(slots=True)
class BuildResult:
    output_file: Path
    bytes_written: int
    entries: int


def open_pack(path: str | Path, options: PackOptions | None = None) -> PackHandle:
    opts = options or PackOptions()
    return PackHandle.open_file(path, chunk_size=opts.copy_chunk_size)


def build_pack(options: BuildOptions) -> BuildResult:
    """Create a new pack at ``output_path`` from a JSON/YAML spec."""
    logger = get_logger()
    rep = get_reporter()
    spec = load_spec(options.input_spec)
    out = Path(options.output_path)
    if out.exists():
        if not options.force:
            raise argument_error(
                f"output already exists: {out}", {"path": str(out)}
            )
        out.unlink()
    with task("build.queue", "Queue entries", total=len(spec.entries)):
        pack = open_pack(out, options.pack)
        for entry in spec.entries:
            if isinstance(entry.source, Path):
                pack.add_file(entry.name, entry.source)
            else:
                pack.add_memory(entry.name, entry.source)
            rep.advance("build.queue", current_item=entry.name)
    try:
        pack.write(force=True)
    except Exception:
        pack.discard()
        raise
    count = pack.count
    size = pack.file_size
    pack.close()
    logger.info("Built pack: %s (%d bytes, entries=%d)", out.name, size, count)
    rep.status(f"Build summary: file={out.name} bytes={size} entries={count}")
    return BuildResult(output_file=out, bytes_written=size, entries=count)


def inspect_pack(path: str | Path | bytes) -> dict:
    return _inspect_pack_impl(path)


def validate_pack(path: str | Path) -> list[str]:
    return _validate_pack_impl(_inspect_pack_impl(path))


def checksum(path: str | Path) -> str:
    """16-hex-digit content hash of a filesystem file."""
    asset = asset_get(path)
    try:
        return hash_hex(hash_asset(asset))
    finally:
        asset_free(asset)
