"""Per-action remote operations run by dispatcher workers.

This module provides:
- SyncOperations: Dispatcher handler applying one WorkItem to the remote

Policy checks (vanished files, size limit, delete gate, remote root
boundary, dry-run) run before the shared connection is touched, so skipped
items never open a connection.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from syncwatch.core.paths import is_within_root, remote_parent, to_relative, to_remote_path
from syncwatch.sync.types import Action, SafetyViolation, StrictSafetyViolation, WorkItem
from syncwatch.transports.base import AlreadyExistsError, NotFoundError, TransportError

if TYPE_CHECKING:
    from syncwatch.sync.connection import ConnectionManager
    from syncwatch.sync.stats import RunStatistics

logger = logging.getLogger(__name__)

# Destructive actions where a boundary violation is fatal in strict mode
STRICT_ACTIONS = frozenset({Action.DELETE, Action.REMOVE_DIR})


class SyncOperations:
    """Applies work items to the remote target."""

    def __init__(
        self,
        connection: ConnectionManager,
        source_dir: Path,
        remote_root: str,
        stats: RunStatistics,
        dry_run: bool = False,
        delete_on_remote: bool = False,
        strict_delete: bool = False,
        max_file_size: int = 0,
    ) -> None:
        """Initialize operations.

        Args:
            connection: Shared connection manager.
            source_dir: Local directory mapped onto remote_root.
            remote_root: Remote root every target must stay within.
            stats: Run statistics to update.
            dry_run: Log intended actions without calling the transport.
            delete_on_remote: Propagate deletions of files and directories.
            strict_delete: Treat unsafe delete/rmdir targets as fatal.
            max_file_size: Skip uploads larger than this many bytes (0 = no limit).
        """
        self._connection = connection
        self._source_dir = Path(source_dir)
        self._remote_root = remote_root
        self._stats = stats
        self._dry_run = dry_run
        self._delete_on_remote = delete_on_remote
        self._strict_delete = strict_delete
        self._max_file_size = max_file_size

    def execute(self, item: WorkItem) -> None:
        """Apply one work item.

        Transport failures are logged and counted, never raised.

        Raises:
            StrictSafetyViolation: If a delete or rmdir target escapes the
                remote root and strict mode is on.
        """
        handlers = {
            Action.UPLOAD: self._upload,
            Action.DELETE: self._delete,
            Action.MAKE_DIR: self._make_dir,
            Action.REMOVE_DIR: self._remove_dir,
        }
        rel = to_relative(self._source_dir, item.local_path)
        try:
            handlers[item.action](item.local_path, rel)
        except StrictSafetyViolation as e:
            self._stats.record_safety_violation()
            logger.error(f"[SAFEGUARD] Refusing {rel}: {e}")
            raise
        except SafetyViolation as e:
            self._stats.record_safety_violation()
            logger.warning(f"[SAFEGUARD] Skipped {rel}: {e}")
        except TransportError as e:
            self._stats.record_error()
            logger.error(f"{item.action.name.lower()} failed for {rel}: {e}")

    def _remote_path(self, local_path: Path, action: Action) -> str:
        """Compute the remote target, enforcing the root boundary.

        Raises:
            SafetyViolation: If the target escapes the remote root.
        """
        remote = to_remote_path(self._remote_root, local_path, self._source_dir)
        if not is_within_root(self._remote_root, remote):
            if self._strict_delete and action in STRICT_ACTIONS:
                raise StrictSafetyViolation(action, remote, self._remote_root)
            raise SafetyViolation(action, remote, self._remote_root)
        return remote

    def _upload(self, local_path: Path, rel: str) -> None:
        if not local_path.is_file():
            logger.debug(f"Skipped {rel}: no longer a regular file")
            return

        try:
            size = local_path.stat().st_size
        except OSError as e:
            logger.debug(f"Skipped {rel}: {e}")
            return
        if self._max_file_size and size > self._max_file_size:
            self._stats.record_skipped_large()
            logger.warning(f"Skipped {rel}: {size} bytes exceeds limit {self._max_file_size}")
            return

        remote = self._remote_path(local_path, Action.UPLOAD)
        if self._dry_run:
            logger.info(f"[dry-run] upload {rel} -> {remote}")
            return

        transport = self._connection.ensure_connected()
        if transport.supports_directories:
            try:
                transport.make_directory(remote_parent(remote, self._remote_root), recursive=True)
            except AlreadyExistsError:
                pass
        transport.upload_file(local_path, remote)
        self._stats.record_upload()
        logger.info(f"↑ uploaded {rel} -> {remote}")

    def _delete(self, local_path: Path, rel: str) -> None:
        if not self._delete_on_remote:
            logger.debug(f"Deletion of {rel} not propagated (delete_on_remote is off)")
            return

        remote = self._remote_path(local_path, Action.DELETE)
        if self._dry_run:
            logger.info(f"[dry-run] delete {remote}")
            return

        transport = self._connection.ensure_connected()
        try:
            transport.delete(remote)
        except NotFoundError:
            logger.debug(f"Already absent on remote: {remote}")
            return
        self._stats.record_delete()
        logger.info(f"✖ deleted {remote}")

    def _make_dir(self, local_path: Path, rel: str) -> None:
        remote = self._remote_path(local_path, Action.MAKE_DIR)
        if self._dry_run:
            logger.info(f"[dry-run] mkdir {remote}")
            return

        transport = self._connection.ensure_connected()
        try:
            transport.make_directory(remote, recursive=True)
        except AlreadyExistsError:
            pass
        self._stats.record_dir_created()
        logger.info(f"＋ dir {remote}")

    def _remove_dir(self, local_path: Path, rel: str) -> None:
        if not self._delete_on_remote:
            logger.debug(f"Removal of {rel}/ not propagated (delete_on_remote is off)")
            return

        remote = self._remote_path(local_path, Action.REMOVE_DIR)
        if self._dry_run:
            logger.info(f"[dry-run] rmdir {remote}")
            return

        transport = self._connection.ensure_connected()
        transport.remove_directory(remote, recursive=True)
        self._stats.record_dir_removed()
        logger.info(f"－ dir {remote}")
