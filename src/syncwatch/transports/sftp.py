"""SFTP transport over paramiko.

One SSH connection is shared by all workers. Each worker thread opens its
own SFTP channel on that connection, since a single SFTP channel does not
support interleaved requests from several threads.
"""

from __future__ import annotations

import errno
import io
import logging
import posixpath
import stat
import threading
from pathlib import Path
from typing import BinaryIO

import paramiko

from syncwatch.core.auth import AuthSelection, select_auth
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

DEFAULT_PORT = 22
KEEPALIVE_INTERVAL = 30

_KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


def load_private_key(material: str) -> paramiko.PKey:
    """Parse PEM/OpenSSH private key text.

    Raises:
        AuthError: If the key cannot be parsed by any supported key type.
    """
    for key_class in _KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(material))
        except paramiko.SSHException:
            continue
    raise AuthError("Unsupported or invalid private key")


class SFTPTransport(Transport):
    """Transport for SSH/SFTP servers."""

    backend_kind = BackendKind.SFTP

    def __init__(
        self,
        host: str,
        username: str,
        auth: AuthSelection,
        port: int = DEFAULT_PORT,
        timeout: float = 30.0,
    ) -> None:
        """Initialize SFTP transport.

        Args:
            host: SSH host name.
            username: Login name.
            auth: Selected authentication method and material.
            port: SSH port.
            timeout: Connection timeout in seconds.
        """
        self._host = host
        self._username = username
        self._auth = auth
        self._port = port
        self._timeout = timeout
        self._ssh: paramiko.SSHClient | None = None
        self._local = threading.local()
        self._channels: list[paramiko.SFTPClient] = []
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, server: ServerConfig, auth_flag: str | None = None) -> SFTPTransport:
        """Create from server configuration."""
        if not server.host or not server.username:
            raise ValueError("SFTP transport requires host and username")
        return cls(
            host=server.host,
            username=server.username,
            auth=select_auth(server, auth_flag=auth_flag),
            port=server.port or DEFAULT_PORT,
            timeout=server.timeout,
        )

    @property
    def location(self) -> str:
        """Return user@host:port."""
        return f"SFTP: {self._username}@{self._host}:{self._port}"

    def connect(self) -> None:
        """Open the SSH connection."""
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kwargs: dict = dict(
            hostname=self._host,
            port=self._port,
            username=self._username,
            timeout=self._timeout,
            banner_timeout=self._timeout,
            auth_timeout=self._timeout,
            allow_agent=False,
            look_for_keys=False,
        )
        if self._auth.method == "key" and self._auth.private_key:
            kwargs["pkey"] = load_private_key(self._auth.private_key)
        else:
            kwargs["password"] = self._auth.password

        logger.info(f"Connecting to {self._username}@{self._host} using {self._auth.method}")
        try:
            client.connect(**kwargs)
        except paramiko.AuthenticationException as e:
            client.close()
            raise AuthError(f"Authentication failed for {self._username}@{self._host}") from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise NetworkError(f"Cannot connect to {self._host}:{self._port}: {e}") from e

        transport = client.get_transport()
        if transport is not None:
            transport.set_keepalive(KEEPALIVE_INTERVAL)
        self._ssh = client

    def _sftp(self) -> paramiko.SFTPClient:
        """Get the SFTP channel of the calling thread."""
        channel: paramiko.SFTPClient | None = getattr(self._local, "sftp", None)
        if channel is not None:
            return channel
        if self._ssh is None:
            raise NetworkError("SFTP client not connected")
        try:
            channel = self._ssh.open_sftp()
        except (paramiko.SSHException, OSError) as e:
            raise NetworkError(f"Cannot open SFTP channel: {e}") from e
        self._local.sftp = channel
        with self._lock:
            self._channels.append(channel)
        return channel

    def _exists(self, remote_path: str) -> bool:
        try:
            self._sftp().stat(remote_path)
            return True
        except FileNotFoundError:
            return False

    def upload_file(self, local_path: Path, remote_path: str) -> None:
        """Upload a local file."""
        try:
            self._sftp().put(str(local_path), remote_path)
        except (paramiko.SSHException, OSError) as e:
            raise TransferError(f"Upload to {remote_path} failed: {e}", remote_path) from e

    def upload_bytes(self, payload: bytes | BinaryIO, remote_path: str) -> None:
        """Upload a buffer or stream."""
        stream = io.BytesIO(payload) if isinstance(payload, bytes | bytearray) else payload
        try:
            self._sftp().putfo(stream, remote_path)
        except (paramiko.SSHException, OSError) as e:
            raise TransferError(f"Upload to {remote_path} failed: {e}", remote_path) from e

    def delete(self, remote_path: str) -> None:
        """Delete a remote file."""
        try:
            self._sftp().remove(remote_path)
        except FileNotFoundError as e:
            raise NotFoundError(f"Not found: {remote_path}", remote_path) from e
        except (paramiko.SSHException, OSError) as e:
            raise TransferError(f"Delete of {remote_path} failed: {e}", remote_path) from e

    def make_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Create a remote directory, with missing parents if recursive."""
        try:
            if not recursive:
                if self._exists(remote_path) or not self._mkdir_unless_present(remote_path):
                    raise AlreadyExistsError(f"Already exists: {remote_path}", remote_path)
                return

            current = "/" if remote_path.startswith("/") else ""
            for part in remote_path.strip("/").split("/"):
                if not part:
                    continue
                current = posixpath.join(current, part) if current else part
                if not self._exists(current):
                    self._mkdir_unless_present(current)
        except (paramiko.SSHException, OSError) as e:
            raise TransferError(f"mkdir {remote_path} failed: {e}", remote_path) from e

    def _mkdir_unless_present(self, remote_path: str) -> bool:
        """Create one directory; False if another worker created it first."""
        try:
            self._sftp().mkdir(remote_path)
        except OSError:
            # SFTP reports an existing directory as a generic failure
            if not self._exists(remote_path):
                raise
            logger.debug(f"mkdir {remote_path}: created concurrently")
            return False
        return True

    def remove_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Remove a remote directory, best effort."""
        sftp = self._sftp()
        try:
            if recursive:
                for attr in sftp.listdir_attr(remote_path):
                    child = posixpath.join(remote_path, attr.filename)
                    if attr.st_mode is not None and stat.S_ISDIR(attr.st_mode):
                        self.remove_directory(child, recursive=True)
                    else:
                        sftp.remove(child)
            sftp.rmdir(remote_path)
        except paramiko.SSHException as e:
            raise TransferError(f"rmdir {remote_path} failed: {e}", remote_path) from e
        except OSError as e:
            # SFTP reports a non-empty directory as a generic failure
            if e.errno not in (None, errno.ENOENT, errno.ENOTEMPTY):
                raise TransferError(f"rmdir {remote_path} failed: {e}", remote_path) from e
            logger.debug(f"rmdir {remote_path} left in place: {e}")

    def list(self, remote_path: str) -> list[RemoteEntry]:
        """List a remote directory."""
        try:
            attrs = self._sftp().listdir_attr(remote_path)
        except (paramiko.SSHException, OSError, NetworkError) as e:
            logger.debug(f"list {remote_path} failed: {e}")
            return []
        entries = [RemoteEntry(name=a.filename, size=a.st_size or 0) for a in attrs]
        return sorted(entries, key=lambda entry: entry.name)

    def close(self) -> None:
        """Close all SFTP channels and the SSH connection."""
        with self._lock:
            channels, self._channels = self._channels, []
            ssh, self._ssh = self._ssh, None
        for channel in channels:
            try:
                channel.close()
            except (paramiko.SSHException, OSError) as e:
                logger.debug(f"Error closing SFTP channel: {e}")
        if ssh is not None:
            ssh.close()
        self._local = threading.local()
