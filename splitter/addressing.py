"""Bidirectional mapping between chunk index and filename suffix (aa, ab, ..., zz)."""

from common.constants import DEFAULT_SUFFIX_LENGTH, MAX_SUFFIX_LENGTH, SUFFIX_ALPHABET
from splitter.exceptions import InvalidSuffixError, SuffixRangeError

_BASE = len(SUFFIX_ALPHABET)


def capacity(width: int = DEFAULT_SUFFIX_LENGTH) -> int:
    """Number of distinct chunks addressable with ``width`` letters."""
    if not 1 <= width <= MAX_SUFFIX_LENGTH:
        raise SuffixRangeError(f"Suffix length must be between 1 and {MAX_SUFFIX_LENGTH}, got {width}")
    return _BASE ** width


def width_for(total_chunks: int) -> int:
    """Smallest suffix width that addresses ``total_chunks`` chunks (minimum 1)."""
    width = 1
    while _BASE ** width < total_chunks:
        width += 1
    return width


def suffix_for(index: int, width: int = DEFAULT_SUFFIX_LENGTH) -> str:
    """
    Encode a chunk index as a fixed-width lowercase suffix.

    Args:
        index: 0-based chunk index
        width: Number of letters in the suffix

    Returns:
        Suffix string, most significant letter first (0 -> "aa", 26 -> "ba")

    Raises:
        SuffixRangeError: If index is negative or does not fit in ``width`` letters
    """
    limit = capacity(width)
    if not 0 <= index < limit:
        raise SuffixRangeError(
            f"Chunk index {index} cannot be addressed with {width} letters (max {limit - 1})"
        )

    letters = []
    for _ in range(width):
        index, digit = divmod(index, _BASE)
        letters.append(SUFFIX_ALPHABET[digit])
    return "".join(reversed(letters))


def index_for(suffix: str, width: int = DEFAULT_SUFFIX_LENGTH) -> int:
    """
    Decode a suffix back to its chunk index.

    Raises:
        InvalidSuffixError: If suffix is not exactly ``width`` lowercase ASCII letters
    """
    if len(suffix) != width or any(ch not in SUFFIX_ALPHABET for ch in suffix):
        raise InvalidSuffixError(f"Not a {width}-letter chunk suffix: {suffix!r}")

    index = 0
    for ch in suffix:
        index = index * _BASE + SUFFIX_ALPHABET.index(ch)
    return index


def is_valid_suffix(suffix: str, width: int = DEFAULT_SUFFIX_LENGTH) -> bool:
    try:
        index_for(suffix, width)
    except InvalidSuffixError:
        return False
    return True
