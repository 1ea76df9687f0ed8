"""
Backup module for tarvault.

This module handles the backup artifact lifecycle:
- Folder discovery
- Compression
- Splitting of large archives
- Upload to remote storage (S3 and local)
- Retention policy enforcement
- Execution orchestration
"""

from .executor import BackupExecutor, execute_backup_pass
from .sources import LocalSource, BackupFolder
from .compression import create_archive
from .splitter import split_archive
from .storage import S3Storage, LocalStorage, create_storage
from .uploader import UploadCoordinator
from .retention import RetentionManager
from .sizes import parse_size

__all__ = [
    'BackupExecutor',
    'execute_backup_pass',
    'LocalSource',
    'BackupFolder',
    'create_archive',
    'split_archive',
    'S3Storage',
    'LocalStorage',
    'create_storage',
    'UploadCoordinator',
    'RetentionManager',
    'parse_size'
]
