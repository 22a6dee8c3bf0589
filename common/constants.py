"""Project-wide constants (default sizes, suffix alphabet, logging format)."""

GIB: int = 1024 * 1024 * 1024

DEFAULT_PREFIX: str = "split_"
DEFAULT_CHUNK_SIZE_GB: int = 8
DEFAULT_SAFETY_BUFFER_GB: int = 2
DEFAULT_DIGEST_ALGORITHM: str = "sha1"

SUFFIX_ALPHABET: str = "abcdefghijklmnopqrstuvwxyz"
DEFAULT_SUFFIX_LENGTH: int = 2
MAX_SUFFIX_LENGTH: int = 8

COPY_PIECE_SIZE: int = 8 * 1024 * 1024  # 8 MiB read/write buffer

LOG_FORMAT: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT: str = '%Y-%m-%d %H:%M:%S'
PACKAGE_LOGGERS: tuple[str, ...] = ("cli", "splitter", "remote_sync", "common")

EXIT_OK: int = 0
EXIT_FAILURE: int = 1
EXIT_USAGE: int = 2
