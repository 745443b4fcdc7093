"""Tests for the SFTP transport with a mocked paramiko client."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import paramiko
import pytest

from syncwatch.core.auth import AuthSelection
from syncwatch.transports import (
    AlreadyExistsError,
    AuthError,
    NetworkError,
    NotFoundError,
    SFTPTransport,
    TransferError,
)
from syncwatch.transports.sftp import load_private_key


@pytest.fixture
def ssh() -> Iterator[MagicMock]:
    """Patch paramiko.SSHClient and yield the client instance."""
    with patch("syncwatch.transports.sftp.paramiko.SSHClient") as client_class:
        instance = client_class.return_value
        instance.open_sftp.side_effect = lambda: MagicMock(name="SFTPClient")
        yield instance


@pytest.fixture
def transport(ssh: MagicMock) -> SFTPTransport:
    """Create a connected SFTPTransport using password auth."""
    transport = SFTPTransport(
        "example.com", "deploy", AuthSelection(method="password", password="pw")
    )
    transport.connect()
    return transport


class TestSFTPConnect:
    """Tests for SFTPTransport.connect()."""

    def test_password_auth(self, transport: SFTPTransport, ssh: MagicMock) -> None:
        """Password auth passes the password and disables agent/key lookup."""
        kwargs = ssh.connect.call_args.kwargs
        assert kwargs["hostname"] == "example.com"
        assert kwargs["username"] == "deploy"
        assert kwargs["password"] == "pw"
        assert kwargs["allow_agent"] is False
        assert kwargs["look_for_keys"] is False

    def test_auth_rejected(self, ssh: MagicMock) -> None:
        """AuthenticationException maps to AuthError."""
        ssh.connect.side_effect = paramiko.AuthenticationException("denied")
        transport = SFTPTransport("h", "u", AuthSelection(method="password", password="x"))
        with pytest.raises(AuthError):
            transport.connect()

    def test_unreachable(self, ssh: MagicMock) -> None:
        """Socket errors map to NetworkError."""
        ssh.connect.side_effect = OSError("No route to host")
        transport = SFTPTransport("h", "u", AuthSelection(method="password", password="x"))
        with pytest.raises(NetworkError):
            transport.connect()

    def test_invalid_private_key(self) -> None:
        """Unparseable key material raises AuthError."""
        with pytest.raises(AuthError):
            load_private_key("not a key")


class TestSFTPOperations:
    """Tests for SFTPTransport operations."""

    def test_channel_per_thread(self, transport: SFTPTransport, ssh: MagicMock) -> None:
        """Each worker thread gets its own SFTP channel."""
        transport.upload_bytes(b"a", "/a")
        transport.upload_bytes(b"b", "/b")
        worker = threading.Thread(target=transport.upload_bytes, args=(b"c", "/c"))
        worker.start()
        worker.join()

        assert ssh.open_sftp.call_count == 2

    def test_delete_missing(self, transport: SFTPTransport) -> None:
        """FileNotFoundError on remove maps to NotFoundError."""
        transport._sftp().remove.side_effect = FileNotFoundError("gone")
        with pytest.raises(NotFoundError):
            transport.delete("/gone")

    def test_make_directory_creates_missing(self, transport: SFTPTransport) -> None:
        """Recursive mkdir stats each component and creates the missing ones."""
        sftp = transport._sftp()
        existing = {"/srv"}

        def stat(path: str) -> object:
            if path not in existing:
                raise FileNotFoundError(path)
            return object()

        sftp.stat.side_effect = stat

        transport.make_directory("/srv/www/a")

        assert [c.args[0] for c in sftp.mkdir.call_args_list] == ["/srv/www", "/srv/www/a"]

    @pytest.fixture
    def created_by_other_worker(self, transport: SFTPTransport) -> MagicMock:
        """Channel where /site/a appears between our stat and our mkdir."""
        sftp = transport._sftp()
        created = {"/site"}

        def stat(path: str) -> object:
            if path not in created:
                created.add(path)
                raise FileNotFoundError(path)
            return object()

        sftp.stat.side_effect = stat
        sftp.mkdir.side_effect = OSError("Failure")
        return sftp

    def test_make_directory_tolerates_concurrent_create(
        self, transport: SFTPTransport, created_by_other_worker: MagicMock
    ) -> None:
        """A parent created by another worker after our stat is not an error."""
        transport.make_directory("/site/a", recursive=True)
        created_by_other_worker.mkdir.assert_called_once_with("/site/a")

    def test_make_directory_non_recursive_concurrent_create(
        self, transport: SFTPTransport, created_by_other_worker: MagicMock
    ) -> None:
        """Losing the race without recursion reports AlreadyExistsError."""
        with pytest.raises(AlreadyExistsError):
            transport.make_directory("/site/a", recursive=False)

    def test_make_directory_real_failure(self, transport: SFTPTransport) -> None:
        """mkdir failing on a still missing path maps to TransferError."""
        sftp = transport._sftp()
        sftp.stat.side_effect = FileNotFoundError("missing")
        sftp.mkdir.side_effect = OSError("Permission denied")
        with pytest.raises(TransferError) as exc_info:
            transport.make_directory("/site/a")
        assert not isinstance(exc_info.value, AlreadyExistsError)

    def test_close_closes_channels(self, transport: SFTPTransport, ssh: MagicMock) -> None:
        """close() closes channels and the SSH client."""
        sftp = transport._sftp()
        transport.close()
        sftp.close.assert_called_once()
        ssh.close.assert_called_once()
