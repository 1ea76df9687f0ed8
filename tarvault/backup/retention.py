"""
Retention policy enforcement for remote backups.

Remote objects are grouped into logical backups: a whole archive, or the
set of parts one archive was split into. A group's age is the age of its
oldest member, and expired groups are deleted member by member.
"""

import logging
import re
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Any

from .storage import RemoteObject, RemoteStorage, StorageError


logger = logging.getLogger(__name__)

# Substrings used to pre-filter listings
ARCHIVE_NAME_FRAGMENTS = ('.tar.gz', '.part')

# <key>.tar.gz, <key>.tar.gz.partNNN or <key>.tar.partNNN
_BACKUP_NAME_PATTERN = re.compile(
    r'^(?P<key>.+?)\.tar(?:\.gz(?:\.part\d{3,})?|\.part\d{3,})$', re.ASCII
)


def backup_group_key(name: str) -> Optional[str]:
    """
    Return the group key shared by an archive and all of its parts.

    'f_2025-01-01T00:00:00Z.tar.gz' and 'f_2025-01-01T00:00:00Z.tar.gz.part002'
    both map to 'f_2025-01-01T00:00:00Z'. Names that don't end in a backup
    suffix return None.
    """
    match = _BACKUP_NAME_PATTERN.match(name)
    return match.group('key') if match else None


def group_backups(objects: List[RemoteObject]) -> Dict[str, List[RemoteObject]]:
    """Group remote objects by backup_group_key, skipping unrelated names."""
    groups = defaultdict(list)
    for obj in objects:
        key = backup_group_key(obj.name)
        if key is None:
            logger.debug(f"Ignoring non-backup object: {obj.name}")
            continue
        groups[key].append(obj)
    return dict(groups)


def group_created_time(group: List[RemoteObject]) -> datetime:
    """Creation time of a group: the earliest member's creation time."""
    return min(_as_utc(obj.created_time) for obj in group)


def _as_utc(moment: datetime) -> datetime:
    # Storage clients return aware datetimes; naive ones are taken as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class RetentionManager:
    """
    Deletes backup groups older than the retention window.

    A retention of 0 days keeps nothing: every group found is deleted.
    """

    def __init__(self, storage: RemoteStorage, parent: str, retention_days: int):
        """
        Args:
            storage: Remote storage client
            parent: Container holding the backups
            retention_days: Age in days after which a group is deleted
        """
        if retention_days < 0:
            raise ValueError(f"Retention days must not be negative: {retention_days}")

        self.storage = storage
        self.parent = parent
        self.retention_days = retention_days
        self.logs = []

    def enforce(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Enforce the retention policy once.

        Args:
            now: Reference time (defaults to the current time)

        Returns:
            Dict with summary of cleanup operations:
            {
                'groups_found': int,
                'groups_deleted': int,
                'objects_deleted': int,
                'errors': List[str],
                'logs': List[str]
            }

        Raises:
            ListError: If the remote listing fails
        """
        now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self.retention_days)
        self._log(
            f"Checking for backups older than {self.retention_days} days "
            f"(cutoff: {cutoff.isoformat()})"
        )

        objects = self.storage.list_objects(self.parent, ARCHIVE_NAME_FRAGMENTS)
        logger.debug(f"Found {len(objects)} objects for retention check")

        groups = group_backups(objects)
        summary = {
            'groups_found': len(groups),
            'groups_deleted': 0,
            'objects_deleted': 0,
            'errors': []
        }

        for key, group in sorted(groups.items()):
            created = group_created_time(group)
            if not self._is_expired(created, cutoff):
                logger.debug(f"Keeping backup group {key} (created {created.isoformat()})")
                continue

            self._log(f"Deleting old backup group: {key} (created {created.isoformat()})")
            summary['groups_deleted'] += 1
            summary['objects_deleted'] += self._delete_group(group, summary['errors'])

        self._log(
            f"Retention enforcement complete. "
            f"Groups: {summary['groups_found']}, "
            f"Deleted groups: {summary['groups_deleted']}, "
            f"Deleted objects: {summary['objects_deleted']}, "
            f"Errors: {len(summary['errors'])}"
        )

        summary['logs'] = self.logs
        return summary

    def _is_expired(self, created: datetime, cutoff: datetime) -> bool:
        return self.retention_days == 0 or created < cutoff

    def _delete_group(self, group: List[RemoteObject], errors: List[str]) -> int:
        """Delete every member; a failed member does not stop the others."""
        deleted_count = 0
        for obj in sorted(group, key=lambda o: o.name):
            try:
                self.storage.delete(obj.id)
                deleted_count += 1
                self._log(f"Deleted object: {obj.name}")
            except StorageError as e:
                error_msg = f"Failed to delete {obj.name}: {e}"
                self._log(error_msg, level=logging.ERROR)
                errors.append(error_msg)
        return deleted_count

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


def enforce_retention_policy(storage: RemoteStorage, parent: str, retention_days: int) -> Dict[str, Any]:
    """
    Enforce the retention policy for one container.

    Returns:
        Summary dict from RetentionManager.enforce()
    """
    manager = RetentionManager(storage, parent, retention_days)
    return manager.enforce()
