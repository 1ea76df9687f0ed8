"""
Unit tests for storage clients (tarvault/backup/storage.py).

Tests S3Storage and LocalStorage for storing backup artifacts.
"""

import io
from datetime import datetime
from types import SimpleNamespace
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from tarvault.backup.storage import (
    S3Storage,
    LocalStorage,
    StorageError,
    ListError,
    DeleteError,
    UploadError,
    create_storage
)


def _s3_storage():
    return S3Storage(
        bucket_name='test-bucket',
        region='us-east-1',
        access_key='test_access_key',
        secret_key='test_secret_key'
    )


class TestS3Storage:
    """Test S3Storage for AWS S3 operations."""

    def test_upload_returns_key_under_parent(self, mock_s3):
        """Test that the object key is {parent}/{name}."""
        storage = _s3_storage()

        key = storage.upload(io.BytesIO(b"test data" * 100), 'photos_2025.tar.gz', 'backups')

        assert key == 'backups/photos_2025.tar.gz'
        obj = mock_s3.Object('test-bucket', key)
        assert obj.content_length == 900

    def test_upload_to_bucket_root(self, mock_s3):
        """Test that an empty parent stores at the bucket root."""
        storage = _s3_storage()

        key = storage.upload(io.BytesIO(b"data"), 'photos_2025.tar.gz', '')

        assert key == 'photos_2025.tar.gz'

    def test_upload_with_chunk_size_multipart(self, mock_s3):
        """Test a multipart upload driven by the chunk size."""
        storage = _s3_storage()
        data = b"x" * (11 * 1024 * 1024)

        key = storage.upload(io.BytesIO(data), 'big.tar.gz', 'backups', chunk_size=5 * 1024 * 1024)

        obj = mock_s3.Object('test-bucket', key)
        assert obj.content_length == len(data)

    def test_upload_passes_chunk_size_to_transfer(self):
        """Test that the chunk size configures the transfer."""
        storage = _s3_storage()
        storage.s3_client = MagicMock()

        storage.upload(io.BytesIO(b"data"), 'a.tar.gz', 'backups', chunk_size=8 * 1024 * 1024)

        transfer_config = storage.s3_client.upload_fileobj.call_args[1]['Config']
        assert transfer_config.multipart_chunksize == 8 * 1024 * 1024
        assert transfer_config.multipart_threshold == 8 * 1024 * 1024
        assert transfer_config.use_threads is False

    def test_upload_default_chunk_size(self):
        """Test that no chunk size keeps the library default."""
        storage = _s3_storage()
        storage.s3_client = MagicMock()

        storage.upload(io.BytesIO(b"data"), 'a.tar.gz', 'backups')

        transfer_config = storage.s3_client.upload_fileobj.call_args[1]['Config']
        assert transfer_config.multipart_chunksize == 8 * 1024 * 1024

    def test_upload_missing_bucket(self, mock_s3):
        """Test that uploading into a missing bucket raises StorageError."""
        storage = S3Storage(bucket_name='no-such-bucket', access_key='k', secret_key='s')

        with pytest.raises(StorageError):
            storage.upload(io.BytesIO(b"data"), 'a.tar.gz', 'backups')

    def test_list_objects_filters_by_name(self, mock_s3):
        """Test listing objects directly under the parent prefix."""
        bucket = mock_s3.Bucket('test-bucket')
        bucket.put_object(Key='backups/photos_1.tar.gz', Body=b'1')
        bucket.put_object(Key='backups/photos_2.tar.gz.part001', Body=b'2')
        bucket.put_object(Key='backups/notes.txt', Body=b'3')
        bucket.put_object(Key='backups/nested/deep.tar.gz', Body=b'4')
        bucket.put_object(Key='other/photos_3.tar.gz', Body=b'5')

        storage = _s3_storage()
        objects = storage.list_objects('backups', ('.tar.gz', '.part'))

        assert [o.name for o in objects] == ['photos_1.tar.gz', 'photos_2.tar.gz.part001']
        assert objects[0].id == 'backups/photos_1.tar.gz'
        assert objects[0].parent == 'backups'
        assert isinstance(objects[0].created_time, datetime)
        assert objects[0].created_time.tzinfo is not None

    def test_list_objects_missing_bucket(self, mock_s3):
        """Test that a listing failure raises ListError."""
        storage = S3Storage(bucket_name='no-such-bucket', access_key='k', secret_key='s')

        with pytest.raises(ListError):
            storage.list_objects('backups', ('.tar.gz',))

    def test_delete(self, mock_s3):
        """Test deleting an object."""
        storage = _s3_storage()
        key = storage.upload(io.BytesIO(b"data"), 'a.tar.gz', 'backups')

        storage.delete(key)

        assert storage.list_objects('backups', ('.tar.gz',)) == []

    def test_delete_failure(self):
        """Test that a delete failure raises DeleteError."""
        storage = _s3_storage()
        storage.s3_client = MagicMock()
        storage.s3_client.delete_object.side_effect = ClientError(
            {'Error': {'Code': 'AccessDenied', 'Message': 'denied'}}, 'DeleteObject'
        )

        with pytest.raises(DeleteError, match="AccessDenied"):
            storage.delete('backups/a.tar.gz')

    def test_test_connection(self, mock_s3):
        """Test connection check against an existing bucket."""
        assert _s3_storage().test_connection() is True

    @mock_aws
    def test_test_connection_missing_bucket(self):
        """Test connection check against a missing bucket."""
        storage = S3Storage(bucket_name='missing-bucket', access_key='k', secret_key='s')

        with pytest.raises(StorageError, match="does not exist"):
            storage.test_connection()


class TestLocalStorage:
    """Test LocalStorage for local filesystem operations."""

    def test_upload_copies_stream(self, tmp_path):
        """Test storing a stream in a container directory."""
        storage = LocalStorage(str(tmp_path / "remote"))

        object_id = storage.upload(io.BytesIO(b"backup data" * 100), 'a.tar.gz', 'backups')

        assert object_id == 'backups/a.tar.gz'
        assert (tmp_path / "remote" / "backups" / "a.tar.gz").read_bytes() == b"backup data" * 100

    def test_upload_small_chunk_size(self, tmp_path):
        """Test that a small chunk size still copies everything."""
        storage = LocalStorage(str(tmp_path / "remote"))
        data = bytes(range(256)) * 40

        object_id = storage.upload(io.BytesIO(data), 'a.tar.gz', 'backups', chunk_size=7)

        assert open(storage.get_full_path(object_id), 'rb').read() == data

    def test_upload_leaves_no_partial_file(self, tmp_path):
        """Test that only the final file remains after upload."""
        storage = LocalStorage(str(tmp_path / "remote"))

        storage.upload(io.BytesIO(b"data"), 'a.tar.gz', 'backups')

        assert sorted(p.name for p in (tmp_path / "remote" / "backups").iterdir()) == ['a.tar.gz']

    def test_upload_failure(self, tmp_path):
        """Test that a failing stream raises StorageError and cleans up."""
        storage = LocalStorage(str(tmp_path / "remote"))
        broken = MagicMock()
        broken.read.side_effect = OSError("read failed")

        with pytest.raises(StorageError, match="read failed"):
            storage.upload(broken, 'a.tar.gz', 'backups')

        assert list((tmp_path / "remote" / "backups").iterdir()) == []

    def test_upload_failure_when_cleanup_fails(self, tmp_path):
        """Test that a failed partial-file removal keeps the original error."""
        storage = LocalStorage(str(tmp_path / "remote"))
        broken = MagicMock()
        broken.read.side_effect = OSError("read failed")

        with patch.object(Path, 'unlink', side_effect=OSError("device busy")):
            with pytest.raises(StorageError, match="read failed"):
                storage.upload(broken, 'a.tar.gz', 'backups')

    def test_list_objects(self, tmp_path):
        """Test listing matching files with creation times."""
        storage = LocalStorage(str(tmp_path / "remote"))
        storage.upload(io.BytesIO(b"1"), 'b.tar.gz.part001', 'backups')
        storage.upload(io.BytesIO(b"2"), 'a.tar.gz', 'backups')
        storage.upload(io.BytesIO(b"3"), 'readme.txt', 'backups')
        (tmp_path / "remote" / "backups" / ".hidden.tar.gz").write_bytes(b"4")

        objects = storage.list_objects('backups', ('.tar.gz', '.part'))

        assert [o.name for o in objects] == ['a.tar.gz', 'b.tar.gz.part001']
        assert objects[0].id == 'backups/a.tar.gz'
        assert objects[0].created_time.tzinfo is not None

    def test_list_objects_missing_container(self, tmp_path):
        """Test that a missing container lists as empty."""
        storage = LocalStorage(str(tmp_path / "remote"))

        assert storage.list_objects('nothing-here', ('.tar.gz',)) == []

    def test_delete(self, tmp_path):
        """Test deleting a stored file."""
        storage = LocalStorage(str(tmp_path / "remote"))
        object_id = storage.upload(io.BytesIO(b"data"), 'a.tar.gz', 'backups')

        storage.delete(object_id)

        assert not (tmp_path / "remote" / "backups" / "a.tar.gz").exists()

    def test_root_container(self, tmp_path):
        """Test that an empty parent uses the base directory."""
        storage = LocalStorage(str(tmp_path / "remote"))

        object_id = storage.upload(io.BytesIO(b"data"), 'a.tar.gz', '')

        assert object_id == 'a.tar.gz'
        assert [o.id for o in storage.list_objects('', ('.tar.gz',))] == ['a.tar.gz']


class TestUploadError:
    """Test UploadError."""

    def test_carries_part_name(self):
        """Test that the failing part name is kept."""
        error = UploadError('a.tar.gz.part002', 'boom')

        assert error.part_name == 'a.tar.gz.part002'
        assert str(error) == 'boom'
        assert isinstance(error, StorageError)


class TestCreateStorage:
    """Test the storage factory."""

    def test_local_backend(self, tmp_path):
        """Test building a LocalStorage."""
        config = SimpleNamespace(STORAGE_BACKEND='local', LOCAL_STORAGE_DIR=str(tmp_path / "remote"))

        assert isinstance(create_storage(config), LocalStorage)

    def test_s3_backend(self):
        """Test building an S3Storage."""
        config = SimpleNamespace(
            STORAGE_BACKEND='s3',
            S3_BUCKET='test-bucket',
            AWS_REGION='eu-west-1',
            AWS_ACCESS_KEY_ID='k',
            AWS_SECRET_ACCESS_KEY='s',
            S3_ENDPOINT_URL=None
        )

        storage = create_storage(config)

        assert isinstance(storage, S3Storage)
        assert storage.bucket_name == 'test-bucket'
        assert storage.region == 'eu-west-1'

    def test_s3_backend_requires_bucket(self):
        """Test that the s3 backend needs a bucket."""
        config = SimpleNamespace(STORAGE_BACKEND='s3', S3_BUCKET=None)

        with pytest.raises(StorageError, match="S3_BUCKET"):
            create_storage(config)

    def test_unknown_backend(self):
        """Test that an unknown backend is rejected."""
        config = SimpleNamespace(STORAGE_BACKEND='ftp')

        with pytest.raises(StorageError, match="Unsupported storage backend"):
            create_storage(config)
