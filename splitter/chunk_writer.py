"""Extracts one byte range of the source into a new chunk file."""

import os
from pathlib import Path
from typing import Callable, Iterator

from common.logging_config import get_logger
from common.types import ChunkSpec
from splitter.exceptions import CopyFailureError
from splitter.source_scanner import read_range

logger = get_logger(__name__)

RangeReader = Callable[[Path, int, int], Iterator[bytes]]


def chunk_path(output_dir: Path, prefix: str, spec: ChunkSpec) -> Path:
    return Path(output_dir) / spec.filename(prefix)


def write_chunk(
    source_path: Path,
    output_dir: Path,
    prefix: str,
    spec: ChunkSpec,
    reader: RangeReader = read_range,
) -> Path:
    """
    Copy ``spec.length`` bytes of the source into ``<output_dir>/<prefix><suffix>``.

    The target is created exclusively; an existing file is never overwritten.
    If the copy stops short, the partial file is left where it is so the next
    run reports it as a size mismatch.

    Args:
        source_path: Path of the source file
        output_dir: Directory receiving the chunk
        prefix: Chunk filename prefix
        spec: Range to copy
        reader: Byte-range reader for the source

    Returns:
        Path of the written chunk

    Raises:
        CopyFailureError: If the chunk could not be created or was written short
    """
    target = chunk_path(output_dir, prefix, spec)
    if spec.length <= 0:
        raise CopyFailureError(target, spec.length, 0, "nothing to copy past the end of the source")

    written = 0
    try:
        with open(target, 'xb') as out:
            for piece in reader(source_path, spec.offset, spec.length):
                out.write(piece)
                written += len(piece)
            out.flush()
            os.fsync(out.fileno())
    except FileExistsError as e:
        raise CopyFailureError(target, spec.length, 0, "chunk file already exists") from e
    except OSError as e:
        logger.error(f"Error creating chunk {spec.suffix}: {e}")
        raise CopyFailureError(target, spec.length, written, str(e)) from e

    if written != spec.length:
        logger.error(f"Short copy for chunk {spec.suffix}: {written} of {spec.length} bytes")
        raise CopyFailureError(target, spec.length, written, "source ended early")

    logger.info(f"Successfully created: {target}")
    return target
