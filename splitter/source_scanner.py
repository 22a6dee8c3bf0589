"""Derives size and chunk layout from the source file, and reads byte ranges of it."""

from pathlib import Path
from typing import Iterator

from common.constants import COPY_PIECE_SIZE, DEFAULT_SUFFIX_LENGTH
from common.types import ChunkSpec, SourceFile
from splitter.addressing import suffix_for
from splitter.exceptions import SourceUnavailableError


def total_chunks(source_size: int, chunk_size: int) -> int:
    """Number of chunks needed to cover ``source_size`` bytes (ceiling division)."""
    return (source_size + chunk_size - 1) // chunk_size


def scan_source(path: Path, chunk_size: int) -> SourceFile:
    """
    Read the source size once and derive the chunk count.

    Args:
        path: Path of the file to split
        chunk_size: Chunk size in bytes

    Returns:
        SourceFile describing the layout for this run

    Raises:
        SourceUnavailableError: If the path is not a readable regular file
    """
    path = Path(path)
    if not path.is_file():
        raise SourceUnavailableError(f"Source file {path} not found!")
    try:
        size = path.stat().st_size
    except OSError as e:
        raise SourceUnavailableError(f"Could not determine size of {path}: {e}") from e

    return SourceFile(
        path=path,
        size=size,
        chunk_size=chunk_size,
        total_chunks=total_chunks(size, chunk_size),
    )


def expected_length(index: int, source_size: int, chunk_size: int) -> int:
    """
    Expected byte length of chunk ``index``; 0 or less means past the end of the source.
    """
    remaining = source_size - index * chunk_size
    return min(chunk_size, remaining)


def chunk_spec(
    index: int,
    source_size: int,
    chunk_size: int,
    width: int = DEFAULT_SUFFIX_LENGTH,
) -> ChunkSpec:
    """
    Build the ChunkSpec for one index.

    Raises:
        ValueError: If the index lies beyond the end of the source
    """
    length = expected_length(index, source_size, chunk_size)
    if index < 0 or length <= 0:
        raise ValueError(f"Chunk {index} is beyond the end of a {source_size}-byte source")
    return ChunkSpec(
        index=index,
        suffix=suffix_for(index, width),
        offset=index * chunk_size,
        length=length,
    )


def iter_chunk_specs(source: SourceFile, width: int = DEFAULT_SUFFIX_LENGTH) -> Iterator[ChunkSpec]:
    for index in range(source.total_chunks):
        yield chunk_spec(index, source.size, source.chunk_size, width)


def read_range(
    path: Path,
    offset: int,
    length: int,
    piece_size: int = COPY_PIECE_SIZE,
) -> Iterator[bytes]:
    """
    Stream ``length`` bytes of ``path`` starting at ``offset``.

    Stops early if the file ends first; callers compare the byte count
    they received with ``length``.

    Yields:
        Data pieces of at most ``piece_size`` bytes

    Raises:
        OSError: If the file cannot be opened or read
    """
    remaining = length
    with open(path, 'rb') as f:
        f.seek(offset)
        while remaining > 0:
            piece = f.read(min(piece_size, remaining))
            if not piece:
                break
            remaining -= len(piece)
            yield piece
