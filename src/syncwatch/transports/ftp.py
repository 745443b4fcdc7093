"""FTP and FTPS transport using ftplib.

An FTP control connection handles one command at a time, so a lock
serializes all operations on the shared connection.
"""

from __future__ import annotations

import ftplib
import io
import logging
import posixpath
import threading
from pathlib import Path
from typing import BinaryIO

from syncwatch.core.config import BackendKind, ServerConfig
from syncwatch.transports.base import (
    AlreadyExistsError,
    AuthError,
    NetworkError,
    NotFoundError,
    RemoteEntry,
    TransferError,
    Transport,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 21

# Reply code for "file unavailable" (missing file, or directory exists on MKD)
REPLY_UNAVAILABLE = "550"
REPLY_NOT_LOGGED_IN = "530"


def reply_code(error: ftplib.Error) -> str:
    """Extract the three-digit reply code from an ftplib error."""
    return str(error.args[0])[:3] if error.args else ""


class FTPTransport(Transport):
    """Transport for FTP servers, optionally over explicit TLS."""

    backend_kind = BackendKind.FTP

    def __init__(
        self,
        host: str,
        username: str | None = None,
        password: str | None = None,
        port: int = DEFAULT_PORT,
        use_tls: bool = False,
        timeout: float = 30.0,
    ) -> None:
        """Initialize FTP transport.

        Args:
            host: FTP host name.
            username: Login name, None for anonymous.
            password: Password.
            port: Control port.
            use_tls: Use FTPS (explicit TLS, protected data channel).
            timeout: Socket timeout in seconds.
        """
        self._host = host
        self._username = username
        self._password = password
        self._port = port
        self._use_tls = use_tls
        self._timeout = timeout
        self._ftp: ftplib.FTP | None = None
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, server: ServerConfig) -> FTPTransport:
        """Create from server configuration."""
        if not server.host:
            raise ValueError("FTP transport requires host")
        return cls(
            host=server.host,
            username=server.username,
            password=server.password,
            port=server.port or DEFAULT_PORT,
            use_tls=server.kind == BackendKind.FTPS,
            timeout=server.timeout,
        )

    @property
    def location(self) -> str:
        """Return the server address."""
        scheme = "FTPS" if self._use_tls else "FTP"
        return f"{scheme}: {self._username or 'anonymous'}@{self._host}:{self._port}"

    def _require(self) -> ftplib.FTP:
        if self._ftp is None:
            raise NetworkError("FTP client not connected")
        return self._ftp

    def connect(self) -> None:
        """Connect and log in."""
        ftp: ftplib.FTP = ftplib.FTP_TLS() if self._use_tls else ftplib.FTP()
        try:
            ftp.connect(self._host, self._port, timeout=self._timeout)
            if self._username:
                ftp.login(self._username, self._password or "")
            else:
                ftp.login()
            if isinstance(ftp, ftplib.FTP_TLS):
                ftp.prot_p()
        except ftplib.error_perm as e:
            ftp.close()
            if reply_code(e) == REPLY_NOT_LOGGED_IN:
                raise AuthError(f"Login rejected by {self._host}: {e}") from e
            raise NetworkError(f"FTP handshake with {self._host} failed: {e}") from e
        except (ftplib.Error, OSError) as e:
            ftp.close()
            raise NetworkError(f"Cannot connect to {self._host}:{self._port}: {e}") from e
        self._ftp = ftp

    def upload_file(self, local_path: Path, remote_path: str) -> None:
        """Upload a local file."""
        try:
            with open(local_path, "rb") as f:
                self._store(f, remote_path)
        except OSError as e:
            raise TransferError(f"Cannot read {local_path}: {e}", remote_path) from e

    def upload_bytes(self, payload: bytes | BinaryIO, remote_path: str) -> None:
        """Upload a buffer or stream."""
        stream = io.BytesIO(payload) if isinstance(payload, bytes | bytearray) else payload
        self._store(stream, remote_path)

    def _store(self, stream: BinaryIO, remote_path: str) -> None:
        with self._lock:
            try:
                self._require().storbinary(f"STOR {remote_path}", stream)
            except (ftplib.Error, OSError) as e:
                raise TransferError(f"STOR {remote_path} failed: {e}", remote_path) from e

    def delete(self, remote_path: str) -> None:
        """Delete a remote file."""
        with self._lock:
            try:
                self._require().delete(remote_path)
            except ftplib.error_perm as e:
                if reply_code(e) == REPLY_UNAVAILABLE:
                    raise NotFoundError(f"Not found: {remote_path}", remote_path) from e
                raise TransferError(f"DELE {remote_path} failed: {e}", remote_path) from e
            except (ftplib.Error, OSError) as e:
                raise TransferError(f"DELE {remote_path} failed: {e}", remote_path) from e

    def _is_dir(self, ftp: ftplib.FTP, remote_path: str) -> bool:
        """Probe a directory by changing into it and back."""
        cwd = ftp.pwd()
        try:
            ftp.cwd(remote_path)
        except ftplib.error_perm:
            return False
        ftp.cwd(cwd)
        return True

    def make_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Create a remote directory, with missing parents if recursive."""
        with self._lock:
            ftp = self._require()
            try:
                if not recursive:
                    if self._is_dir(ftp, remote_path):
                        raise AlreadyExistsError(f"Already exists: {remote_path}", remote_path)
                    ftp.mkd(remote_path)
                    return

                current = "/" if remote_path.startswith("/") else ""
                for part in remote_path.strip("/").split("/"):
                    if not part:
                        continue
                    current = posixpath.join(current, part) if current else part
                    if not self._is_dir(ftp, current):
                        ftp.mkd(current)
            except (ftplib.Error, OSError) as e:
                raise TransferError(f"MKD {remote_path} failed: {e}", remote_path) from e

    def remove_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Remove a remote directory, best effort."""
        with self._lock:
            ftp = self._require()
            try:
                if recursive:
                    for name, facts in list(ftp.mlsd(remote_path, facts=["type"])):
                        if name in (".", ".."):
                            continue
                        child = posixpath.join(remote_path, name)
                        if facts.get("type") == "dir":
                            self.remove_directory(child, recursive=True)
                        else:
                            ftp.delete(child)
                ftp.rmd(remote_path)
            except ftplib.error_perm as e:
                logger.debug(f"RMD {remote_path} left in place: {e}")
            except (ftplib.Error, OSError) as e:
                raise TransferError(f"RMD {remote_path} failed: {e}", remote_path) from e

    def list(self, remote_path: str) -> list[RemoteEntry]:
        """List a remote directory using MLSD."""
        with self._lock:
            try:
                listing = list(self._require().mlsd(remote_path, facts=["size", "type"]))
            except (ftplib.Error, OSError, NetworkError) as e:
                logger.debug(f"list {remote_path} failed: {e}")
                return []
        entries = [
            RemoteEntry(name=name, size=int(facts.get("size", 0) or 0))
            for name, facts in listing
            if name not in (".", "..")
        ]
        return sorted(entries, key=lambda entry: entry.name)

    def close(self) -> None:
        """Quit politely, falling back to closing the socket."""
        with self._lock:
            ftp, self._ftp = self._ftp, None
        if ftp is None:
            return
        try:
            ftp.quit()
        except (ftplib.Error, OSError):
            ftp.close()


class FTPSTransport(FTPTransport):
    """FTP over explicit TLS."""

    backend_kind = BackendKind.FTPS
