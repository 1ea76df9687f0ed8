"""
Upload of a finished archive to remote storage.

Large archives are split into parts first (see splitter.py). Each part
is an independent transfer; a failed part stops the upload but parts
already sent stay at the remote end.
"""

import logging
import os
from typing import List, Optional

from .compression import get_archive_size
from .splitter import needs_split, split_archive
from .storage import RemoteStorage, StorageError, UploadError


logger = logging.getLogger(__name__)


class UploadCoordinator:
    """
    Uploads archives, splitting them when they exceed the split size.

    Split size decides how many remote objects an archive becomes; chunk
    size decides how many bytes go in each request while one object is
    transferred.
    """

    def __init__(
        self,
        storage: RemoteStorage,
        temp_dir: str,
        split_size: Optional[int] = None,
        chunk_size: Optional[int] = None
    ):
        """
        Args:
            storage: Remote storage client
            temp_dir: Directory where part files are written
            split_size: Bytes per part, or None to never split
            chunk_size: Bytes per transfer request, or None for the default
        """
        self.storage = storage
        self.temp_dir = temp_dir
        self.split_size = split_size
        self.chunk_size = chunk_size

    def upload(self, archive_path: str, archive_name: str, parent: str) -> List[str]:
        """
        Upload an archive, split or whole.

        Args:
            archive_path: Local path of the archive
            archive_name: Logical archive name, used as the remote name
            parent: Destination container

        Returns:
            Ordered list of remote identifiers, one per uploaded part

        Raises:
            CompressionError: If the archive size cannot be read
            SplitError: If splitting fails
            UploadError: On the first part that fails to upload
        """
        logger.info(f"Starting upload for {archive_name}")
        archive_size = get_archive_size(archive_path)

        if needs_split(archive_size, self.split_size):
            logger.info(f"Split size set to {self.split_size} bytes")
            part_paths = split_archive(archive_path, self.temp_dir, archive_name, self.split_size)
        else:
            part_paths = [archive_path]

        if self.chunk_size:
            logger.info(f"Using custom chunk size of {self.chunk_size} bytes")
        else:
            logger.debug("Using default chunk size")

        split = len(part_paths) > 1
        uploaded_ids = []

        for index, part_path in enumerate(part_paths):
            part_name = os.path.basename(part_path) if split else archive_name
            logger.info(f"Uploading {part_name} ({index + 1}/{len(part_paths)})")

            try:
                object_id = self._upload_part(part_path, part_name, parent)
            except UploadError:
                if split:
                    self._discard_parts(part_paths[index:])
                raise

            uploaded_ids.append(object_id)
            logger.info(f"Finished upload for {part_name}. Object ID: {object_id}")

            if split:
                self._remove_part(part_path)

        if split:
            logger.info(f"Uploaded {len(uploaded_ids)} parts. Object IDs: {uploaded_ids}")

        return uploaded_ids

    def _upload_part(self, part_path: str, part_name: str, parent: str) -> str:
        try:
            with open(part_path, 'rb') as f:
                return self.storage.upload(f, part_name, parent, chunk_size=self.chunk_size)
        except (OSError, StorageError) as e:
            logger.error(f"Upload failed for {part_name}: {e}")
            raise UploadError(part_name, f"Failed to upload {part_name}: {e}")

    def _remove_part(self, part_path: str):
        try:
            os.remove(part_path)
            logger.info(f"Removed part file {part_path}")
        except OSError as e:
            logger.warning(f"Failed to remove part file {part_path}: {e}")

    def _discard_parts(self, part_paths: List[str]):
        """Remove part files that will not be uploaded."""
        for part_path in part_paths:
            if os.path.exists(part_path):
                self._remove_part(part_path)
