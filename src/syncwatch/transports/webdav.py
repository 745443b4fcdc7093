"""WebDAV transport using httpx.

Directories map to collections: MKCOL creates them, DELETE on a collection
removes it recursively, PROPFIND with depth 1 lists them.
"""

from __future__ import annotations

import logging
import posixpath
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote, unquote, urlparse

import httpx

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

DAV_NS = "{DAV:}"

PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop>'
    "<d:getcontentlength/><d:resourcetype/>"
    "</d:prop></d:propfind>"
)


class WebDAVTransport(Transport):
    """Transport for WebDAV servers."""

    backend_kind = BackendKind.WEBDAV

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        verify_ssl: bool = True,
    ) -> None:
        """Initialize WebDAV transport.

        Args:
            base_url: Server URL that remote paths are appended to.
            username: Basic auth user.
            password: Basic auth password.
            timeout: Request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
        """
        self._base_url = base_url.rstrip("/")
        self._auth = (username, password or "") if username else None
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._client: httpx.Client | None = None

    @classmethod
    def from_config(cls, server: ServerConfig) -> WebDAVTransport:
        """Create from server configuration."""
        base_url = server.url or f"https://{server.host}"
        return cls(
            base_url=base_url,
            username=server.username,
            password=server.password,
            timeout=server.timeout,
            verify_ssl=server.verify_ssl,
        )

    @property
    def location(self) -> str:
        """Return the server URL."""
        return f"WebDAV: {self._base_url}"

    def _url_path(self, remote_path: str) -> str:
        return quote("/" + remote_path.lstrip("/"))

    def _require(self) -> httpx.Client:
        if self._client is None:
            raise NetworkError("WebDAV client not connected")
        return self._client

    def _request(self, method: str, remote_path: str, **kwargs: object) -> httpx.Response:
        """Send a request, mapping transport and status errors."""
        try:
            response = self._require().request(method, self._url_path(remote_path), **kwargs)  # type: ignore[arg-type]
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {remote_path} failed: {e}", remote_path) from e

        if response.status_code in (401, 403):
            raise AuthError(f"{method} {remote_path}: HTTP {response.status_code}", remote_path)
        if response.status_code == 404:
            raise NotFoundError(f"Not found: {remote_path}", remote_path)
        if response.status_code == 405 and method == "MKCOL":
            raise AlreadyExistsError(f"Already exists: {remote_path}", remote_path)
        if response.status_code >= 400:
            raise TransferError(
                f"{method} {remote_path}: HTTP {response.status_code}", remote_path
            )
        return response

    def connect(self) -> None:
        """Create the HTTP client and check the server answers."""
        self._client = httpx.Client(
            base_url=self._base_url,
            auth=self._auth,
            timeout=self._timeout,
            verify=self._verify_ssl,
        )
        try:
            self._request("PROPFIND", "/", headers={"Depth": "0"}, content=PROPFIND_BODY)
        except NotFoundError:
            # Some servers only expose sub-collections
            pass
        except (AuthError, NetworkError):
            self.close()
            raise
        except TransferError as e:
            self.close()
            raise NetworkError(str(e)) from e

    def upload_file(self, local_path: Path, remote_path: str) -> None:
        """Upload a local file."""
        try:
            with open(local_path, "rb") as f:
                self._request("PUT", remote_path, content=f)
        except OSError as e:
            raise TransferError(f"Cannot read {local_path}: {e}", remote_path) from e

    def upload_bytes(self, payload: bytes | BinaryIO, remote_path: str) -> None:
        """Upload a buffer or stream."""
        content = payload if isinstance(payload, bytes | bytearray) else payload.read()
        self._request("PUT", remote_path, content=content)

    def delete(self, remote_path: str) -> None:
        """Delete a remote file."""
        self._request("DELETE", remote_path)

    def make_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Create a collection, with missing parents if recursive."""
        if not recursive:
            self._request("MKCOL", remote_path)
            return
        current = ""
        for part in remote_path.strip("/").split("/"):
            if not part:
                continue
            current = f"{current}/{part}"
            try:
                self._request("MKCOL", current)
            except AlreadyExistsError:
                continue

    def remove_directory(self, remote_path: str, recursive: bool = True) -> None:
        """Delete a collection, best effort."""
        try:
            self._request("DELETE", remote_path)
        except NotFoundError:
            logger.debug(f"rmdir {remote_path}: already absent")
        except TransferError as e:
            # 409/423 on a collection the server refuses to drop
            logger.debug(f"rmdir {remote_path} left in place: {e}")

    def list(self, remote_path: str) -> list[RemoteEntry]:
        """List a collection with PROPFIND depth 1."""
        try:
            response = self._request(
                "PROPFIND", remote_path, headers={"Depth": "1"}, content=PROPFIND_BODY
            )
            root = ET.fromstring(response.content)
        except (TransferError, NetworkError, AuthError, ET.ParseError) as e:
            logger.debug(f"list {remote_path} failed: {e}")
            return []

        base_prefix = urlparse(self._base_url).path.rstrip("/")
        own_path = (base_prefix + "/" + remote_path.strip("/")).rstrip("/") or "/"
        entries = []
        for item in root.iter(f"{DAV_NS}response"):
            href = item.findtext(f"{DAV_NS}href") or ""
            path = unquote(urlparse(href).path).rstrip("/") or "/"
            if path == own_path:
                continue
            size_text = item.findtext(f".//{DAV_NS}getcontentlength")
            entries.append(
                RemoteEntry(name=posixpath.basename(path), size=int(size_text or 0))
            )
        return sorted(entries, key=lambda entry: entry.name)

    def close(self) -> None:
        """Close the HTTP client."""
        client, self._client = self._client, None
        if client is not None:
            client.close()
