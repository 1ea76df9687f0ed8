"""
Shared pytest fixtures for tarvault tests.

This module provides fixtures for:
- Configuration pointing at temporary directories
- Backup roots with sample folders
- Storage clients (local directory, mocked S3, MagicMock)
- Temporary file fixtures
"""

import os
from datetime import timezone
from unittest.mock import MagicMock

import pytest
import boto3
from moto import mock_aws

from tarvault.config import Config
from tarvault.backup.storage import LocalStorage, RemoteObject, RemoteStorage


@pytest.fixture
def env(tmp_path):
    """
    Environment mapping for a Config rooted in tmp_path.

    Uses the local storage backend and disables file logging.
    """
    return {
        'BACKUP_DIR': str(tmp_path / 'backup'),
        'TEMP_DIR': str(tmp_path / 'temp'),
        'STORAGE_BACKEND': 'local',
        'LOCAL_STORAGE_DIR': str(tmp_path / 'remote'),
        'LOG_DIR': '',
        'RETENTION_DAYS': '30',
        'BACKUP_PREFIX': 'backups',
        'TZ': 'UTC',
    }


@pytest.fixture
def config(env):
    """Config built from the env fixture, with directories created."""
    os.makedirs(env['BACKUP_DIR'], exist_ok=True)
    os.makedirs(env['TEMP_DIR'], exist_ok=True)
    return Config(env)


@pytest.fixture
def local_storage(config):
    """LocalStorage rooted at the configured LOCAL_STORAGE_DIR."""
    return LocalStorage(config.LOCAL_STORAGE_DIR)


@pytest.fixture
def mock_storage():
    """MagicMock storage client returning sequential object IDs."""
    storage = MagicMock(spec=RemoteStorage)
    storage.list_objects.return_value = []
    counter = iter(range(1, 1000))
    storage.upload.side_effect = lambda fileobj, name, parent, chunk_size=None: f"id-{next(counter)}"
    return storage


@pytest.fixture
def backup_root(config):
    """
    Create sample backup folders under BACKUP_DIR.

    Creates:
    - photos/a.jpg, photos/2024/b.jpg
    - documents/report.txt
    - stray.txt (regular file at the root, not a backup folder)
    """
    root = config.BACKUP_DIR
    os.makedirs(os.path.join(root, 'photos', '2024'))
    with open(os.path.join(root, 'photos', 'a.jpg'), 'wb') as f:
        f.write(b'\xff\xd8' + b'a' * 2048)
    with open(os.path.join(root, 'photos', '2024', 'b.jpg'), 'wb') as f:
        f.write(b'\xff\xd8' + b'b' * 4096)

    os.makedirs(os.path.join(root, 'documents'))
    with open(os.path.join(root, 'documents', 'report.txt'), 'w') as f:
        f.write('Quarterly report')

    with open(os.path.join(root, 'stray.txt'), 'w') as f:
        f.write('not a folder')

    return root


@pytest.fixture
def temp_files(tmp_path):
    """
    Create a directory tree to archive.

    Creates:
    - source/test_file1.txt
    - source/test_file2.log
    - source/nested/test_file3.txt
    - source/empty_dir/
    """
    source = tmp_path / 'source'
    source.mkdir()
    (source / 'test_file1.txt').write_text('Test content 1')
    (source / 'test_file2.log').write_text('Test log content')

    nested_dir = source / 'nested'
    nested_dir.mkdir()
    (nested_dir / 'test_file3.txt').write_text('Nested test content')

    (source / 'empty_dir').mkdir()

    return source


@pytest.fixture
def make_file(tmp_path):
    """Factory creating a file of `size` bytes with a repeating byte pattern."""
    def _make_file(name, size):
        path = tmp_path / name
        pattern = bytes(range(256))
        data = (pattern * (size // 256 + 1))[:size]
        path.write_bytes(data)
        return path
    return _make_file


@pytest.fixture
def remote_object():
    """Factory for RemoteObject records."""
    def _remote_object(name, created, parent='backups'):
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return RemoteObject(id=f"{parent}/{name}", name=name, created_time=created, parent=parent)
    return _remote_object


@pytest.fixture
def mock_s3():
    """
    Mock AWS S3 service using moto.

    Creates a test bucket 'test-bucket' in us-east-1 region.
    """
    with mock_aws():
        s3 = boto3.resource('s3', region_name='us-east-1')
        s3.create_bucket(Bucket='test-bucket')
        yield s3
