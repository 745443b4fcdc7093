"""Local filesystem transport.

Remote paths are mapped below a local directory, which makes this backend
usable for network mounts and for testing without a server.
"""

from __future__ import annotations

import errno
import logging
import shutil
from pathlib import Path
from typing import BinaryIO

from syncwatch.core.config import BackendKind, ServerConfig
from syncwatch.transports.base import (
    AlreadyExistsError,
    NetworkError,
    NotFoundError,
    RemoteEntry,
    TransferError,
    Transport,
)

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024


class LocalTransport(Transport):
    """Transport writing into a local directory tree."""

    backend_kind = BackendKind.LOCAL

    def __init__(self, local_root: Path | str) -> None:
        """Initialize local transport.

        Args:
            local_root: Directory that remote absolute paths are mapped under.
        """
        self._local_root = Path(local_root).resolve()
        self._connected = False

    @classmethod
    def from_config(cls, server: ServerConfig) -> LocalTransport:
        """Create from server configuration."""
        return cls(server.local_root)

    @property
    def location(self) -> str:
        """Return the local root."""
        return f"Local filesystem: {self._local_root}"

    def _resolve(self, remote_path: str) -> Path:
        """Map a remote path onto the local root."""
        if not self._connected:
            raise NetworkError("Local transport not connected")
        return self._local_root / remote_path.lstrip("/")

    def connect(self) -> None:
        """Check that the local root is a usable directory."""
        if not self._local_root.is_dir():
            raise NetworkError(f"Local root does not exist: {self._local_root}")
        self._connected = True

    def upload_file(self, local_path: Path, remote_path: str) -> None:
        """Copy a local file to the mapped destination."""
        target = self._resolve(remote_path)
        try:
            shutil.copyfile(local_path, target)
        except OSError as e:
            raise TransferError(f"Copy to {target} failed: {e}", remote_path) from e

    def upload_bytes(self, payload: bytes | BinaryIO, remote_path: str) -> None:
        """Write a buffer or stream to the mapped destination."""
        target = self._resolve(remote_path)
        try:
            if isinstance(payload, bytes | bytearray):
                target.write_bytes(payload)
            else:
                with open(target, "wb") as f:
                    shutil.copyfileobj(payload, f, COPY_BUFFER_SIZE)
        except OSError as e:
            raise TransferError(f"Write to {target} failed: {e}", remote_path) from e

    def delete(self, remote_path: str) -> None:
        """Delete the mapped file."""
        target = self._resolve(remote_path)
        try:
            target.unlink()
        except FileNotFoundError as e:
            raise NotFoundError(f"Not found: {remote_path}", remote_path) from e
        except OSError as e:
            raise TransferError(f"Delete of {target} failed: {e}", remote_path) from e

    def make_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Create the mapped directory."""
        target = self._resolve(remote_path)
        try:
            target.mkdir(parents=recursive, exist_ok=recursive)
        except FileExistsError as e:
            raise AlreadyExistsError(f"Already exists: {remote_path}", remote_path) from e
        except OSError as e:
            raise TransferError(f"mkdir {target} failed: {e}", remote_path) from e

    def remove_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Remove the mapped directory, ignoring missing or non-empty ones."""
        target = self._resolve(remote_path)
        try:
            if recursive:
                shutil.rmtree(target)
            else:
                target.rmdir()
        except FileNotFoundError:
            logger.debug(f"rmdir: {remote_path} already absent")
        except OSError as e:
            if e.errno == errno.ENOTEMPTY:
                logger.debug(f"rmdir: {remote_path} not empty, left in place")
                return
            raise TransferError(f"rmdir {target} failed: {e}", remote_path) from e

    def list(self, remote_path: str) -> list[RemoteEntry]:
        """List the mapped directory."""
        try:
            target = self._resolve(remote_path)
            entries = [
                RemoteEntry(name=child.name, size=child.stat().st_size if child.is_file() else 0)
                for child in target.iterdir()
            ]
        except (OSError, NetworkError) as e:
            logger.debug(f"list {remote_path} failed: {e}")
            return []
        return sorted(entries, key=lambda entry: entry.name)

    def close(self) -> None:
        """Mark as disconnected."""
        self._connected = False
