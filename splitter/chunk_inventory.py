"""Discovers existing chunk files and validates their sizes."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from common.constants import DEFAULT_DIGEST_ALGORITHM, DEFAULT_SUFFIX_LENGTH
from common.logging_config import get_logger
from common.types import SourceFile
from splitter.addressing import index_for, suffix_for
from splitter.exceptions import InvalidSuffixError, SizeMismatchError
from splitter.source_scanner import expected_length

logger = get_logger(__name__)


@dataclass
class ChunkInventory:
    """
    Chunk files present in the output directory.
    """
    present: Dict[int, Path] = field(default_factory=dict)
    missing: List[int] = field(default_factory=list)

    @property
    def last_index(self) -> int:
        """Highest present index, or -1 if there are no chunks."""
        return max(self.present) if self.present else -1

    @property
    def resume_index(self) -> int:
        return self.last_index + 1

    def boundary_path(self) -> Path | None:
        if not self.present:
            return None
        return self.present[self.last_index]


def scan_output_dir(
    output_dir: Path,
    prefix: str,
    width: int = DEFAULT_SUFFIX_LENGTH,
    digest_ext: str = DEFAULT_DIGEST_ALGORITHM,
) -> Dict[int, Path]:
    """
    List chunk files in the output directory.

    Entries that start with ``prefix`` but are digest sidecars, temporary
    files, directories, or carry a malformed suffix are skipped.

    Returns:
        Mapping of chunk index to path
    """
    chunks: Dict[int, Path] = {}
    for path in Path(output_dir).iterdir():
        if not path.name.startswith(prefix):
            continue
        if path.name.endswith(f".{digest_ext}") or not path.is_file():
            continue
        suffix = path.name[len(prefix):]
        try:
            index = index_for(suffix, width)
        except InvalidSuffixError:
            logger.debug(f"Ignoring {path.name}: not a chunk file")
            continue
        chunks[index] = path
    return chunks


def take_inventory(
    output_dir: Path,
    prefix: str,
    width: int = DEFAULT_SUFFIX_LENGTH,
    digest_ext: str = DEFAULT_DIGEST_ALGORITHM,
) -> ChunkInventory:
    """
    Find present chunks and the gaps below the highest one.

    Gaps are expected when finished chunks were moved elsewhere to free
    space; each one is logged as a warning and the run continues.
    """
    present = scan_output_dir(output_dir, prefix, width, digest_ext)
    inventory = ChunkInventory(present=present)

    for index in range(inventory.last_index):
        if index not in present:
            inventory.missing.append(index)
            logger.warning(
                f"Missing chunk file: {Path(output_dir) / (prefix + suffix_for(index, width))}"
            )
    return inventory


def validate_chunk_sizes(inventory: ChunkInventory, source: SourceFile) -> None:
    """
    Check that every present chunk has exactly its expected length.

    Raises:
        SizeMismatchError: On the first chunk whose length is wrong, including
            a chunk whose index lies past the end of the source
    """
    logger.info("Validating existing chunks...")
    for index in sorted(inventory.present):
        path = inventory.present[index]
        expected = max(expected_length(index, source.size, source.chunk_size), 0)
        actual = path.stat().st_size
        if actual != expected:
            logger.error(
                f"Partial chunk detected: {path} expected={expected} actual={actual}"
            )
            raise SizeMismatchError(path, expected, actual)
    logger.info("Chunk validation completed.")
