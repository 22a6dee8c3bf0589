"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SplitCommand:
    """Split SOURCE_FILE into chunks under OUTPUT_DIR, optionally syncing to B2."""

    source_file: str
    output_dir: str
    prefix: str
    chunk_size_bytes: int
    safety_buffer_bytes: int
    digest_algorithm: str
    suffix_length: int
    b2_bucket: Optional[str] = None
    b2_remote_path: Optional[str] = None
    debug: bool = False

    @property
    def upload_enabled(self) -> bool:
        return self.b2_bucket is not None
