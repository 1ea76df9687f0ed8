"""
Discovery of the folders to back up.

Every immediate subdirectory of the backup root is one backup folder and
becomes one archive per pass.
"""

import logging
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import List


logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Raised when the backup root cannot be read."""
    pass


@dataclass(frozen=True)
class BackupFolder:
    """A directory under the backup root."""
    name: str
    path: str


class LocalSource:
    """
    Lists backup folders under a local root directory.
    """

    def __init__(self, backup_root: str, exclude_patterns: List[str] = None):
        """
        Initialize local source handler.

        Args:
            backup_root: Directory whose subdirectories are backed up
            exclude_patterns: Glob patterns for folder names to skip (e.g., lost+found, .*)
        """
        self.backup_root = backup_root
        self.exclude_patterns = exclude_patterns or []

    def _should_exclude(self, path: Path) -> bool:
        """
        Check if a folder should be excluded based on exclude patterns.

        Args:
            path: Path to check

        Returns:
            True if the folder name or full path matches any pattern
        """
        for pattern in self.exclude_patterns:
            if fnmatch(path.name, pattern) or fnmatch(str(path), pattern):
                return True
        return False

    def discover(self) -> List[BackupFolder]:
        """
        List the folders to back up, sorted by name.

        Regular files directly under the root are ignored.

        Raises:
            SourceError: If the root does not exist or cannot be listed
        """
        root = Path(self.backup_root)

        if not root.is_dir():
            raise SourceError(f"Backup directory does not exist: {self.backup_root}")

        try:
            entries = sorted(root.iterdir(), key=lambda p: p.name)
        except PermissionError as e:
            raise SourceError(f"Permission denied accessing {self.backup_root}: {e}")
        except OSError as e:
            raise SourceError(f"Failed to list backup dir {self.backup_root}: {e}")

        folders = []
        for entry in entries:
            if not entry.is_dir():
                continue
            if self._should_exclude(entry):
                logger.info(f"Excluding folder: {entry.name}")
                continue
            folders.append(BackupFolder(name=entry.name, path=str(entry)))

        logger.debug(f"Discovered {len(folders)} backup folders in {self.backup_root}")
        return folders
