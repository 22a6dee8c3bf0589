"""Digest calculation, digest sidecar persistence, and boundary chunk verification."""

import hashlib
import os
import re
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from common.constants import COPY_PIECE_SIZE, DEFAULT_DIGEST_ALGORITHM
from common.logging_config import get_logger
from common.types import ChunkSpec
from splitter.exceptions import IntegrityMismatchError
from splitter.source_scanner import read_range

logger = get_logger(__name__)

RangeReader = Callable[[Path, int, int], Iterator[bytes]]

_HEX = re.compile(r'^[0-9a-f]+$')


class DigestCalculator:
    """
    Calculate a content digest incrementally for streaming data.

    Usage:
        calculator = DigestCalculator("sha1")
        calculator.update(piece1)
        calculator.update(piece2)
        final_digest = calculator.finalize()
    """

    def __init__(self, algorithm: str = DEFAULT_DIGEST_ALGORITHM):
        self.algorithm = algorithm
        self._hasher = hashlib.new(algorithm)
        self._finalized = False
        self.bytes_seen = 0

    def update(self, data: bytes) -> None:
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)
        self.bytes_seen += len(data)

    def finalize(self) -> str:
        """
        Finalize the calculation and return the hex digest.
        """
        self._finalized = True
        return self._hasher.hexdigest()


def digest_hex_length(algorithm: str) -> int:
    return hashlib.new(algorithm).digest_size * 2


def digest_pieces(pieces: Iterable[bytes], algorithm: str = DEFAULT_DIGEST_ALGORITHM) -> str:
    calculator = DigestCalculator(algorithm)
    for piece in pieces:
        calculator.update(piece)
    return calculator.finalize()


def compute_file_digest(
    path: Path,
    algorithm: str = DEFAULT_DIGEST_ALGORITHM,
    piece_size: int = COPY_PIECE_SIZE,
) -> str:
    """
    Compute the digest of an entire file, streaming it in pieces.

    Raises:
        OSError: If the file cannot be read
    """
    def pieces() -> Iterator[bytes]:
        with open(path, 'rb') as f:
            while piece := f.read(piece_size):
                yield piece

    return digest_pieces(pieces(), algorithm)


def compute_range_digest(
    path: Path,
    offset: int,
    length: int,
    algorithm: str = DEFAULT_DIGEST_ALGORITHM,
    reader: RangeReader = read_range,
) -> str:
    """Digest of ``length`` bytes of ``path`` starting at ``offset``."""
    return digest_pieces(reader(path, offset, length), algorithm)


def sidecar_path(chunk_path: Path, algorithm: str = DEFAULT_DIGEST_ALGORITHM) -> Path:
    """
    Get path of the digest sidecar for a chunk (e.g. split_aa -> split_aa.sha1).
    """
    return chunk_path.with_name(f"{chunk_path.name}.{algorithm}")


def read_digest_record(chunk_path: Path, algorithm: str = DEFAULT_DIGEST_ALGORITHM) -> Optional[str]:
    """
    Read the cached digest for a chunk.

    Returns:
        Hex digest, or None if the sidecar is absent or malformed
    """
    record = sidecar_path(chunk_path, algorithm)
    try:
        text = record.read_text(encoding='utf-8')
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Unreadable digest record {record}: {e}")
        return None

    fields = text.split()
    if not fields:
        logger.warning(f"Empty digest record {record}, will recompute")
        return None

    digest = fields[0].lower()
    if len(digest) != digest_hex_length(algorithm) or not _HEX.match(digest):
        logger.warning(f"Malformed digest record {record}, will recompute")
        return None
    return digest


def write_digest_record(
    chunk_path: Path,
    digest: str,
    algorithm: str = DEFAULT_DIGEST_ALGORITHM,
) -> Path:
    """
    Persist ``"<hex>  <filename>"`` next to the chunk.

    The record is written to a temporary name and renamed into place so a
    crash never leaves a half-written record behind.

    Returns:
        Path of the sidecar file
    """
    record = sidecar_path(chunk_path, algorithm)
    tmp = record.with_name(f"{record.name}.tmp")
    with open(tmp, 'w', encoding='utf-8') as f:
        f.write(f"{digest}  {chunk_path.name}\n")
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, record)
    return record


def get_or_compute_digest(chunk_path: Path, algorithm: str = DEFAULT_DIGEST_ALGORITHM) -> str:
    """
    Get the chunk digest from its sidecar, computing and persisting it if needed.

    The sidecar is never deleted once written.
    """
    cached = read_digest_record(chunk_path, algorithm)
    if cached is not None:
        return cached

    logger.info(f"Computing {algorithm.upper()} hash for {chunk_path.name}...")
    digest = compute_file_digest(chunk_path, algorithm)
    write_digest_record(chunk_path, digest, algorithm)
    return digest


def verify_boundary_chunk(
    chunk_path: Path,
    spec: ChunkSpec,
    source_path: Path,
    algorithm: str = DEFAULT_DIGEST_ALGORITHM,
    reader: RangeReader = read_range,
) -> str:
    """
    Verify the highest-index chunk against the matching range of the source.

    Only this chunk can have been cut short by an interrupted run; lower
    chunks were verified as the boundary of an earlier run.

    Args:
        chunk_path: Path of the boundary chunk
        spec: Its ChunkSpec
        source_path: Path of the source file
        algorithm: Digest algorithm
        reader: Byte-range reader for the source

    Returns:
        The verified digest

    Raises:
        IntegrityMismatchError: If the chunk and source digests differ
    """
    logger.info(f"Verifying integrity of last chunk: {chunk_path.name}")

    cached = read_digest_record(chunk_path, algorithm)
    chunk_digest = cached if cached is not None else compute_file_digest(chunk_path, algorithm)
    source_digest = compute_range_digest(source_path, spec.offset, spec.length, algorithm, reader)

    if chunk_digest != source_digest:
        logger.error(
            f"Hash mismatch for {chunk_path.name}: chunk={chunk_digest} source={source_digest}"
        )
        raise IntegrityMismatchError(chunk_path, chunk_digest, source_digest)

    if cached is None:
        write_digest_record(chunk_path, chunk_digest, algorithm)

    logger.info("Last chunk integrity verified successfully.")
    return chunk_digest
