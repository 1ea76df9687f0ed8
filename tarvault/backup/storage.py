"""
Remote storage clients for backup artifacts.

Supports:
- S3Storage: AWS S3 or any S3 compatible endpoint
- LocalStorage: a directory on the local filesystem (mounted volume, NAS)

Both expose the same operations: upload a named object into a container,
list objects in a container, delete an object by identifier.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import ClientError, BotoCoreError


logger = logging.getLogger(__name__)

# Copy buffer for LocalStorage when no chunk size is configured
DEFAULT_LOCAL_CHUNK_SIZE = 1024 * 1024


class StorageError(Exception):
    """Raised when a storage operation fails."""
    pass


class ListError(StorageError):
    """Raised when listing remote objects fails."""
    pass


class DeleteError(StorageError):
    """Raised when deleting a remote object fails."""
    pass


class UploadError(StorageError):
    """Raised when uploading an artifact part fails."""

    def __init__(self, part_name: str, message: str):
        super().__init__(message)
        self.part_name = part_name


@dataclass(frozen=True)
class RemoteObject:
    """An object stored at the remote end."""
    id: str
    name: str
    created_time: datetime
    parent: str


class RemoteStorage:
    """Interface shared by the storage clients."""

    def upload(self, fileobj: BinaryIO, name: str, parent: str, chunk_size: Optional[int] = None) -> str:
        """
        Create an object from a byte stream.

        Args:
            fileobj: Open binary file to read from
            name: Object name
            parent: Destination container
            chunk_size: Bytes per transfer request, or None for the default

        Returns:
            Identifier of the created object
        """
        raise NotImplementedError

    def list_objects(self, parent: str, name_contains: Iterable[str]) -> List[RemoteObject]:
        """List live objects in parent whose name contains any of the substrings."""
        raise NotImplementedError

    def delete(self, object_id: str):
        """Delete an object by identifier."""
        raise NotImplementedError


def _matches(name: str, name_contains: Iterable[str]) -> bool:
    return any(fragment in name for fragment in name_contains)


class S3Storage(RemoteStorage):
    """
    Storage client for S3.

    The container is a key prefix; object identifiers are full keys:
    {parent}/{name}
    """

    def __init__(
        self,
        bucket_name: str,
        region: str = 'us-east-1',
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        endpoint_url: Optional[str] = None
    ):
        """
        Initialize S3 storage client.

        Credentials fall back to boto3's default chain when access_key and
        secret_key are not given.

        Args:
            bucket_name: S3 bucket name
            region: AWS region (default: us-east-1)
            access_key: Optional AWS access key ID
            secret_key: Optional AWS secret access key
            endpoint_url: Optional endpoint for S3 compatible services
        """
        self.bucket_name = bucket_name
        self.region = region

        client_kwargs = {'region_name': region}
        if access_key and secret_key:
            client_kwargs['aws_access_key_id'] = access_key
            client_kwargs['aws_secret_access_key'] = secret_key
        if endpoint_url:
            client_kwargs['endpoint_url'] = endpoint_url

        try:
            self.s3_client = boto3.client('s3', **client_kwargs)
        except (BotoCoreError, ValueError) as e:
            raise StorageError(f"Failed to initialize S3 client: {e}")

    @staticmethod
    def _prefix(parent: str) -> str:
        parent = (parent or '').strip('/')
        return f"{parent}/" if parent else ''

    @staticmethod
    def _transfer_config(chunk_size: Optional[int]) -> TransferConfig:
        # Parts of one object are sent one after another
        if chunk_size and chunk_size > 0:
            return TransferConfig(
                multipart_threshold=chunk_size,
                multipart_chunksize=chunk_size,
                use_threads=False
            )
        return TransferConfig(use_threads=False)

    def upload(self, fileobj: BinaryIO, name: str, parent: str, chunk_size: Optional[int] = None) -> str:
        s3_key = f"{self._prefix(parent)}{name}"

        try:
            self.s3_client.upload_fileobj(
                fileobj,
                self.bucket_name,
                s3_key,
                Config=self._transfer_config(chunk_size)
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise StorageError(f"S3 upload failed ({error_code}): {e}")
        except (S3UploadFailedError, BotoCoreError) as e:
            raise StorageError(f"S3 upload failed: {e}")

        return s3_key

    def list_objects(self, parent: str, name_contains: Iterable[str]) -> List[RemoteObject]:
        """
        List objects directly under the parent prefix.

        Only current objects are returned; deleted versions and delete
        markers never appear in list_objects_v2.
        """
        prefix = self._prefix(parent)
        name_contains = tuple(name_contains)

        try:
            objects = []
            paginator = self.s3_client.get_paginator('list_objects_v2')

            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix, Delimiter='/'):
                for obj in page.get('Contents', []):
                    name = obj['Key'][len(prefix):]
                    if not name or not _matches(name, name_contains):
                        continue
                    objects.append(RemoteObject(
                        id=obj['Key'],
                        name=name,
                        created_time=obj['LastModified'],
                        parent=parent
                    ))

            return sorted(objects, key=lambda o: o.name)

        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise ListError(f"S3 list failed ({error_code}): {e}")
        except BotoCoreError as e:
            raise ListError(f"Failed to list S3 objects: {e}")

    def delete(self, object_id: str):
        try:
            self.s3_client.delete_object(
                Bucket=self.bucket_name,
                Key=object_id
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise DeleteError(f"S3 delete failed ({error_code}): {e}")
        except BotoCoreError as e:
            raise DeleteError(f"Failed to delete from S3: {e}")

    def test_connection(self) -> bool:
        """
        Test S3 connection and bucket access.

        Raises:
            StorageError: If the bucket is missing or not accessible
        """
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return True
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == '404':
                raise StorageError(f"Bucket does not exist: {self.bucket_name}")
            elif error_code == '403':
                raise StorageError(f"Access denied to bucket: {self.bucket_name}")
            else:
                raise StorageError(f"S3 connection test failed ({error_code}): {e}")
        except BotoCoreError as e:
            raise StorageError(f"Failed to connect to S3: {e}")


class LocalStorage(RemoteStorage):
    """
    Storage client backed by a local directory.

    Containers are subdirectories of base_path; identifiers are paths
    relative to base_path. Names starting with '.' are never listed, which
    hides in-flight uploads.
    """

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create local storage directory: {e}")

    def _container(self, parent: str) -> Path:
        parent = (parent or '').strip('/')
        return self.base_path / parent if parent else self.base_path

    def upload(self, fileobj: BinaryIO, name: str, parent: str, chunk_size: Optional[int] = None) -> str:
        container = self._container(parent)
        dest_path = container / name
        partial_path = container / f".{name}.uploading"

        try:
            container.mkdir(parents=True, exist_ok=True)
            with open(partial_path, 'wb') as out:
                shutil.copyfileobj(fileobj, out, chunk_size or DEFAULT_LOCAL_CHUNK_SIZE)
            os.replace(partial_path, dest_path)
        except OSError as e:
            try:
                partial_path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.warning(f"Failed to remove partial upload {partial_path}: {cleanup_error}")
            raise StorageError(f"Failed to store {name} in {container}: {e}")

        return dest_path.relative_to(self.base_path).as_posix()

    def list_objects(self, parent: str, name_contains: Iterable[str]) -> List[RemoteObject]:
        container = self._container(parent)
        name_contains = tuple(name_contains)

        if not container.exists():
            return []

        try:
            objects = []
            for entry in container.iterdir():
                if entry.name.startswith('.') or not entry.is_file():
                    continue
                if not _matches(entry.name, name_contains):
                    continue
                stat = entry.stat()
                objects.append(RemoteObject(
                    id=entry.relative_to(self.base_path).as_posix(),
                    name=entry.name,
                    created_time=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    parent=parent
                ))

            return sorted(objects, key=lambda o: o.name)

        except OSError as e:
            raise ListError(f"Failed to list local files in {container}: {e}")

    def delete(self, object_id: str):
        full_path = self.base_path / object_id

        try:
            if full_path.exists():
                full_path.unlink()
        except OSError as e:
            raise DeleteError(f"Failed to delete local file {full_path}: {e}")

    def get_full_path(self, object_id: str) -> str:
        """Get full filesystem path from an object identifier."""
        return str(self.base_path / object_id)


def create_storage(config) -> RemoteStorage:
    """
    Build the storage client selected by config.STORAGE_BACKEND.

    Args:
        config: Config instance

    Raises:
        StorageError: If the backend is unknown or cannot be initialized
    """
    backend = config.STORAGE_BACKEND

    if backend == 's3':
        if not config.S3_BUCKET:
            raise StorageError("S3_BUCKET must be set for the s3 storage backend")
        return S3Storage(
            bucket_name=config.S3_BUCKET,
            region=config.AWS_REGION,
            access_key=config.AWS_ACCESS_KEY_ID,
            secret_key=config.AWS_SECRET_ACCESS_KEY,
            endpoint_url=config.S3_ENDPOINT_URL
        )
    elif backend == 'local':
        return LocalStorage(config.LOCAL_STORAGE_DIR)
    else:
        raise StorageError(f"Unsupported storage backend: {backend}")
