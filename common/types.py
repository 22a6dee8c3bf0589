"""Shared data type definitions (SourceFile, ChunkSpec)."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SourceFile:
    """
    The file being split. Size is read once per run.
    """
    path: Path
    size: int
    chunk_size: int
    total_chunks: int


@dataclass(frozen=True)
class ChunkSpec:
    """
    Byte range of the source that a single chunk file holds.
    """
    index: int
    suffix: str
    offset: int
    length: int

    def filename(self, prefix: str) -> str:
        return f"{prefix}{self.suffix}"

    @property
    def end(self) -> int:
        return self.offset + self.length
