"""
Splitting of large archives into fixed-size parts.

Parts are named {base_name}.part001, {base_name}.part002, ... and
concatenating them in order reproduces the original archive.
"""

import logging
import os
from typing import List, Optional


logger = logging.getLogger(__name__)

# Read buffer used while copying a part
COPY_BUFFER_SIZE = 1024 * 1024


class SplitError(Exception):
    """Raised when an archive cannot be split into parts."""
    pass


def needs_split(archive_size: int, split_size: Optional[int]) -> bool:
    """Return True when an archive of archive_size must be split."""
    return bool(split_size) and split_size > 0 and archive_size > split_size


def part_filename(base_name: str, part_number: int) -> str:
    """Name of the given 1-based part."""
    return f"{base_name}.part{part_number:03d}"


def split_archive(archive_path: str, output_dir: str, base_name: str, split_size: int) -> List[str]:
    """
    Split an archive into parts of split_size bytes.

    The last part may be shorter. A part that would be empty (archive size
    an exact multiple of split_size) is removed and not returned.

    On failure the part being written is removed; parts already completed
    stay on disk.

    Args:
        archive_path: Archive to split
        output_dir: Directory for the part files
        base_name: Name prefix for the parts
        split_size: Bytes per part

    Returns:
        Ordered list of part file paths

    Raises:
        SplitError: On any read or write failure
        ValueError: If split_size is not positive
    """
    if split_size <= 0:
        raise ValueError(f"Split size must be greater than 0: {split_size}")

    logger.info(f"Splitting {archive_path} into parts of {split_size} bytes")

    try:
        source = open(archive_path, 'rb')
    except OSError as e:
        raise SplitError(f"Failed to open archive {archive_path}: {e}")

    parts = []
    with source:
        part_number = 1
        while True:
            part_path = os.path.join(output_dir, part_filename(base_name, part_number))
            written = _copy_part(source, part_path, split_size)

            if written > 0:
                parts.append(part_path)
                logger.info(f"Created part {part_number}: {part_path} ({written} bytes)")
            else:
                _remove_quietly(part_path)
                logger.debug(f"Skipped empty part {part_number}")

            if written < split_size:
                break
            part_number += 1

    logger.info(f"Split complete: {len(parts)} parts created")
    return parts


def _copy_part(source, part_path: str, length: int) -> int:
    """Copy up to length bytes from source into a new file at part_path."""
    written = 0
    try:
        with open(part_path, 'wb') as output:
            while written < length:
                data = source.read(min(COPY_BUFFER_SIZE, length - written))
                if not data:
                    break
                output.write(data)
                written += len(data)
    except OSError as e:
        _remove_quietly(part_path)
        raise SplitError(f"Failed to write part {part_path}: {e}")

    return written


def _remove_quietly(path: str):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove part file {path}: {e}")
