"""Gates creation of each new chunk on free space in the output directory."""

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from common.logging_config import get_logger

logger = get_logger(__name__)

FreeSpaceFn = Callable[[Path], int]


def available_bytes(path: Path) -> int:
    """Free bytes available on the filesystem holding ``path``."""
    return shutil.disk_usage(path).free


@dataclass(frozen=True)
class SpaceCheck:
    available: int
    required: int

    @property
    def ok(self) -> bool:
        return self.available >= self.required


class DiskSpaceGovernor:
    """
    Requires room for one more chunk plus a safety buffer before each write.

    The buffer is a heuristic margin: nothing stops other processes from
    consuming space between the check and the write.
    """

    def __init__(
        self,
        output_dir: Path,
        chunk_size: int,
        safety_buffer: int,
        free_space_fn: Optional[FreeSpaceFn] = None,
    ):
        self.output_dir = Path(output_dir)
        self.chunk_size = chunk_size
        self.safety_buffer = safety_buffer
        self._free_space = free_space_fn or available_bytes

    @property
    def required(self) -> int:
        return self.chunk_size + self.safety_buffer

    def available(self) -> int:
        return self._free_space(self.output_dir)

    def check(self) -> SpaceCheck:
        """
        Read current free space and compare it with the requirement.

        Returns:
            SpaceCheck; ``ok`` is False when the next chunk must wait
        """
        result = SpaceCheck(available=self.available(), required=self.required)
        if not result.ok:
            logger.warning(
                f"Not enough disk space for next chunk plus safety buffer "
                f"(available={result.available}, required={result.required})"
            )
        return result
