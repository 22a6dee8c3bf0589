"""Utility functions for CLI size handling."""

import re

from common.constants import GIB

_SIZE_PATTERN = re.compile(r'^\s*(\d+)\s*([kmgt]i?b?|b)?\s*$', re.IGNORECASE)
_UNITS = {
    'b': 1,
    'k': 1024,
    'm': 1024 ** 2,
    'g': 1024 ** 3,
    't': 1024 ** 4,
}


def parse_size(text: str, default_unit: int = GIB) -> int:
    """
    Parse a size argument into bytes.

    Bare integers are in ``default_unit`` (GiB, as the chunk size and buffer
    options have always been given). ``K``, ``M``, ``G``, ``T`` suffixes are
    binary units; ``B`` means plain bytes.

    Args:
        text: Size such as "8", "512M", "4GiB" or "1000B"
        default_unit: Multiplier for a bare number

    Returns:
        Size in bytes

    Raises:
        ValueError: If the text is not a non-negative size
    """
    match = _SIZE_PATTERN.match(text)
    if not match:
        raise ValueError(f"invalid size: {text!r}")

    number = int(match.group(1))
    unit = match.group(2)
    if unit is None:
        return number * default_unit
    return number * _UNITS[unit[0].lower()]


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"
