"""Dataclass models for pack build specifications."""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass(slots=True)
class EntrySpec:
    name: str
    # Either inline bytes or a file streamed at write time.
    source: bytes | Path


@dataclass(slots=True)
class PackSpec:
    base_dir: Path
    entries: List[EntrySpec] = field(default_factory=list)

    @property
    def names(self) -> List[str]:
        return [e.name for e in self.entries]
