"""Confinement of spec-relative file references."""

from __future__ import annotations
from pathlib import Path

__all__ = ["safe_file_path"]


def safe_file_path(base_dir: Path, file_path: str) -> Path:
    """Resolve ``file_path`` against ``base_dir``, symlinks included.

    Raises ValueError when the result lies outside ``base_dir``; absolute
    paths are accepted only if they point inside it.
    """
    root = Path(base_dir).resolve()
    candidate = (root / file_path).resolve()
    if candidate != root and root not in candidate.parents:
        raise ValueError(f"{file_path!r} resolves outside {root}")
    return candidate
