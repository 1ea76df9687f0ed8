"""
Human-readable size strings.

Parses values like "100MB", "1.5 gb" or "512kb" into byte counts using
binary multiples (1 KB = 1024 bytes).
"""

import logging
import math
import re
from typing import Optional


logger = logging.getLogger(__name__)

_SIZE_PATTERN = re.compile(r'^(\d+(?:\.\d+)?)\s*(b|kb|mb|gb|tb)$', re.ASCII)

_UNIT_MULTIPLIERS = {
    'b': 1,
    'kb': 1024,
    'mb': 1024 ** 2,
    'gb': 1024 ** 3,
    'tb': 1024 ** 4,
}


class SizeParseError(ValueError):
    """Raised when a size string cannot be converted to bytes."""
    pass


class InvalidSizeFormat(SizeParseError):
    """The string is not of the form <number><unit>."""
    pass


class InvalidSizeNumber(SizeParseError):
    """The numeric portion cannot be used as a byte count."""
    pass


class SizeOutOfRange(SizeParseError):
    """The computed byte count is not positive."""
    pass


def parse_size(size_str: str) -> int:
    """
    Convert a size string to a number of bytes.

    Matching is case-insensitive and tolerates whitespace between the
    number and the unit. Fractional bytes are truncated.

    Args:
        size_str: Size string such as '10MB' or '1.5 GB'

    Returns:
        Size in bytes

    Raises:
        InvalidSizeFormat: If the string does not match <number><unit>
        InvalidSizeNumber: If the number cannot be converted
        SizeOutOfRange: If the result is not greater than 0
    """
    normalized = size_str.strip().lower()

    match = _SIZE_PATTERN.match(normalized)
    if not match:
        raise InvalidSizeFormat(
            f"Invalid size format: {size_str!r} (expected format like '10MB', '1.5GB')"
        )

    number, unit = match.groups()

    try:
        value = float(number)
    except ValueError:
        raise InvalidSizeNumber(f"Invalid numeric value: {number}")

    result = value * _UNIT_MULTIPLIERS[unit]
    if not math.isfinite(result):
        raise InvalidSizeNumber(f"Numeric value too large: {number}")

    size = int(result)
    if size <= 0:
        raise SizeOutOfRange(f"Size must be greater than 0: {size_str!r}")

    return size


def parse_size_setting(value: Optional[str], setting_name: str) -> Optional[int]:
    """
    Parse an optional size setting, disabling it when invalid.

    Args:
        value: Raw setting value (may be None or blank)
        setting_name: Name of the setting, used in the warning

    Returns:
        Size in bytes, or None when unset or invalid
    """
    if value is None or not value.strip():
        return None

    try:
        return parse_size(value)
    except SizeParseError as e:
        logger.warning(f"Invalid {setting_name} value: {value} ({e}), feature disabled")
        return None
