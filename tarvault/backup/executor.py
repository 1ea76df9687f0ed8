"""
Backup executor - orchestrates one backup pass.

Workflow:
1. Enforce the retention policy on the destination
2. Discover backup folders
3. For each folder:
   a. Create compressed archive in the temp directory
   b. Upload it (split into parts when configured)
   c. Remove the local archive and any leftover parts
"""

import glob
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List

from .compression import create_archive, generate_archive_filename, get_archive_size, CompressionError
from .retention import enforce_retention_policy
from .sources import BackupFolder, LocalSource
from .splitter import SplitError
from .storage import RemoteStorage, StorageError, UploadError
from .uploader import UploadCoordinator
from tarvault.utils.timestamps import current_timestamp


logger = logging.getLogger(__name__)


class BackupExecutor:
    """
    Runs one backup pass over every folder in the backup root.
    """

    def __init__(self, config, storage: RemoteStorage):
        """
        Initialize backup executor.

        Args:
            config: Config instance
            storage: Remote storage client
        """
        self.config = config
        self.storage = storage
        self.logs = []

    def execute(self) -> Dict[str, Any]:
        """
        Execute one backup pass.

        A failure in one folder is logged and the next folder is still
        processed.

        Returns:
            Dict with summary of the pass:
            {
                'folders_processed': int,
                'folders_failed': int,
                'uploaded': Dict[str, List[str]],
                'retention': Dict | None,
                'errors': List[str],
                'logs': List[str]
            }

        Raises:
            SourceError: If the backup root cannot be listed
        """
        self._log("Starting backup process")
        summary = {
            'folders_processed': 0,
            'folders_failed': 0,
            'uploaded': {},
            'retention': None,
            'errors': []
        }

        summary['retention'] = self._enforce_retention(summary['errors'])

        os.makedirs(self.config.TEMP_DIR, exist_ok=True)
        source = LocalSource(self.config.BACKUP_DIR, self.config.EXCLUDE_PATTERNS)
        folders = source.discover()
        self._log(f"Found {len(folders)} folders to back up")

        uploader = UploadCoordinator(
            self.storage,
            self.config.TEMP_DIR,
            split_size=self.config.split_size,
            chunk_size=self.config.chunk_size
        )
        tz = self.config.timezone

        for folder in folders:
            try:
                archive_name, object_ids = self._backup_folder(folder, uploader, tz)
                summary['uploaded'][archive_name] = object_ids
                summary['folders_processed'] += 1
            except (CompressionError, SplitError, UploadError) as e:
                error_msg = f"Backup of {folder.path} failed: {e}"
                self._log(error_msg, level=logging.ERROR)
                summary['errors'].append(error_msg)
                summary['folders_failed'] += 1

        self._log(
            f"All folders processed. "
            f"Succeeded: {summary['folders_processed']}, "
            f"Failed: {summary['folders_failed']}"
        )

        summary['logs'] = self.logs
        return summary

    def _enforce_retention(self, errors: List[str]):
        """Run the retention sweep; a failure is recorded and the pass goes on."""
        try:
            return enforce_retention_policy(
                self.storage,
                self.config.BACKUP_PREFIX,
                self.config.RETENTION_DAYS
            )
        except StorageError as e:
            error_msg = f"Error during retention cleanup: {e}"
            self._log(error_msg, level=logging.ERROR)
            errors.append(error_msg)
            return None

    def _backup_folder(self, folder: BackupFolder, uploader: UploadCoordinator, tz):
        """
        Archive and upload one folder.

        Returns:
            Tuple of (archive name, remote object IDs)
        """
        timestamp = current_timestamp(tz, self.config.FILENAME_SAFE_TIMESTAMP)
        archive_name = generate_archive_filename(folder.name, timestamp)
        archive_path = os.path.join(self.config.TEMP_DIR, archive_name)

        try:
            create_archive(folder.path, archive_path)
            file_size = get_archive_size(archive_path)
            self._log(f"Archive created: {archive_name} ({file_size / 1024 / 1024:.2f} MB)")

            object_ids = uploader.upload(archive_path, archive_name, self.config.BACKUP_PREFIX)
            self._log(f"Uploaded {archive_name} as {len(object_ids)} object(s)")
            return archive_name, object_ids
        finally:
            self._cleanup(archive_path)

    def _cleanup(self, archive_path: str):
        """Remove the local archive and any part files left next to it."""
        leftovers = glob.glob(glob.escape(archive_path) + '.part*')
        for path in [archive_path] + leftovers:
            if not os.path.exists(path):
                continue
            try:
                os.remove(path)
                self._log(f"Deleted local file {path}")
            except OSError as e:
                self._log(f"Warning: Failed to delete local file {path}: {e}", level=logging.WARNING)

    def _log(self, message: str, level: int = logging.INFO):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
            level: Logging level for the module logger
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.logs.append(f"[{timestamp}] {message}")
        logger.log(level, message)


def execute_backup_pass(config, storage: RemoteStorage) -> Dict[str, Any]:
    """
    Run one backup pass.

    Returns:
        Summary dict from BackupExecutor.execute()
    """
    executor = BackupExecutor(config, storage)
    return executor.execute()
