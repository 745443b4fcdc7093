"""Transport abstraction for remote targets.

This module provides:
- Transport: Abstract interface every backend adapter implements
- RemoteEntry: Listing entry returned by Transport.list()
- TransportError and subclasses: Typed error taxonomy for adapters

Adapters translate their native errors (errno values, FTP reply codes,
HTTP status codes, botocore error codes) into these types so callers
never inspect error messages.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, ClassVar

if TYPE_CHECKING:
    from syncwatch.core.config import BackendKind

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    """Classification of a transport failure."""

    NOT_FOUND = auto()
    ALREADY_EXISTS = auto()
    OTHER = auto()


class TransportError(Exception):
    """Base exception for transport failures."""

    kind: ClassVar[ErrorKind] = ErrorKind.OTHER

    def __init__(self, message: str, remote_path: str | None = None) -> None:
        super().__init__(message)
        self.remote_path = remote_path


class AuthError(TransportError):
    """Credentials missing or rejected."""


class NetworkError(TransportError):
    """Remote unreachable or connection dropped."""


class TransferError(TransportError):
    """A remote operation failed."""


class NotFoundError(TransferError):
    """Remote path does not exist."""

    kind = ErrorKind.NOT_FOUND


class AlreadyExistsError(TransferError):
    """Remote path already exists."""

    kind = ErrorKind.ALREADY_EXISTS


@dataclass(frozen=True)
class RemoteEntry:
    """One entry of a remote listing."""

    name: str
    size: int


class Transport(ABC):
    """Abstract interface for remote targets.

    Implementations are created unconnected; connect() must be called before
    any other operation. A connected transport is shared by all dispatcher
    workers, so operations must not depend on per-call state.
    """

    backend_kind: ClassVar[BackendKind]

    # Flat object stores have no directories; make/remove become no-ops
    supports_directories: ClassVar[bool] = True

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of the remote target."""

    @abstractmethod
    def connect(self) -> None:
        """Open the connection.

        Raises:
            AuthError: If credentials are rejected.
            NetworkError: If the remote cannot be reached.
        """

    @abstractmethod
    def upload_file(self, local_path: Path, remote_path: str) -> None:
        """Upload a whole local file.

        Raises:
            TransferError: If the upload fails.
        """

    @abstractmethod
    def upload_bytes(self, payload: bytes | BinaryIO, remote_path: str) -> None:
        """Upload from an in-memory buffer or a readable binary stream.

        Raises:
            TransferError: If the upload fails.
        """

    @abstractmethod
    def delete(self, remote_path: str) -> None:
        """Delete a remote file.

        Raises:
            NotFoundError: If the file does not exist.
            TransferError: If the delete fails.
        """

    @abstractmethod
    def make_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Create a remote directory.

        Raises:
            AlreadyExistsError: If not recursive and the directory exists.
            TransferError: If creation fails.
        """

    @abstractmethod
    def remove_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Remove a remote directory, best effort.

        Failures caused by a non-empty directory are swallowed.

        Raises:
            TransferError: On other failures.
        """

    @abstractmethod
    def list(self, remote_path: str) -> list[RemoteEntry]:
        """List a remote directory or key prefix.

        Returns:
            Entries ordered by name; an empty list on any error.
        """

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Idempotent, never raises."""

    def __enter__(self) -> Transport:
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()
