"""
Archive creation for backup folders.

Every folder is written as a gzip compressed tar whose top-level entry is
the folder's own name, so extracting reproduces <folder>/... wherever it
is unpacked.
"""

import logging
import os
import tarfile


logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = '.tar.gz'


class CompressionError(Exception):
    """Raised when archive creation fails."""
    pass


def create_archive(source_dir: str, archive_path: str) -> str:
    """
    Stream a directory tree into a tar.gz archive.

    File contents are copied through the archive writer in blocks, never
    read whole into memory. The source directory's own entry is not
    written; its children carry the folder name as their first path
    component.

    On failure the walk stops and a partial file may be left at
    archive_path. Removing it is up to the caller.

    Args:
        source_dir: Directory to archive
        archive_path: Destination path of the archive

    Returns:
        archive_path

    Raises:
        CompressionError: If the destination cannot be written or the
            source cannot be walked or read
    """
    source_dir = os.path.abspath(source_dir)
    if not os.path.isdir(source_dir):
        raise CompressionError(f"Source is not a directory: {source_dir}")

    logger.info(f"Compressing {source_dir} to {archive_path}")
    root_name = os.path.basename(source_dir)

    try:
        with tarfile.open(archive_path, 'w:gz') as tar:
            for dirpath, dirnames, filenames in os.walk(source_dir, onerror=_raise_walk_error):
                # Walk in a stable order so identical trees give identical archives
                dirnames.sort()
                for name in dirnames + sorted(filenames):
                    path = os.path.join(dirpath, name)
                    arcname = os.path.join(root_name, os.path.relpath(path, source_dir))
                    _add_entry(tar, path, arcname)
    except CompressionError:
        raise
    except (OSError, tarfile.TarError) as e:
        raise CompressionError(f"Failed to create archive {archive_path}: {e}")

    return archive_path


def _raise_walk_error(error: OSError):
    raise CompressionError(f"Failed to walk {error.filename}: {error}")


def _add_entry(tar: tarfile.TarFile, path: str, arcname: str):
    """Write one header, plus the body for regular files."""
    info = tar.gettarinfo(path, arcname=arcname)
    if info is None:
        logger.debug(f"Skipping unsupported file type: {path}")
        return

    if info.isreg():
        with open(path, 'rb') as f:
            tar.addfile(info, f)
    else:
        tar.addfile(info)


def generate_archive_filename(folder_name: str, timestamp: str) -> str:
    """
    Build the logical archive name for a folder.

    Format: {folder_name}_{timestamp}.tar.gz
    """
    return f"{folder_name}_{timestamp}{ARCHIVE_EXTENSION}"


def get_archive_size(archive_path: str) -> int:
    """
    Get the size of an archive file in bytes.

    Raises:
        CompressionError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(archive_path)
    except FileNotFoundError:
        raise CompressionError(f"Archive not found: {archive_path}")
    except OSError as e:
        raise CompressionError(f"Failed to get archive size: {e}")
