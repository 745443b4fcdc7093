"""Tests for the WebDAV transport against an in-memory server."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import quote, unquote

import httpx
import pytest
from pytest_httpx import HTTPXMock

from syncwatch.transports import (
    AlreadyExistsError,
    AuthError,
    NetworkError,
    NotFoundError,
    WebDAVTransport,
)

PREFIX = "/remote.php/dav"
BASE_URL = f"https://dav.example.com{PREFIX}"


class FakeDAVServer:
    """Minimal WebDAV server keeping files and collections in memory."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.collections: set[str] = {"/"}
        self.requests: list[tuple[str, str]] = []
        self.status_override: int | None = None

    def _propfind(self, path: str, depth: str) -> httpx.Response:
        if path not in self.collections and path not in self.files:
            return httpx.Response(404)
        members = [path]
        if depth == "1" and path in self.collections:
            base = path.rstrip("/")
            for candidate in sorted(self.collections | set(self.files)):
                if candidate != path and candidate.rsplit("/", 1)[0] == base:
                    members.append(candidate)
        body = ['<?xml version="1.0"?><d:multistatus xmlns:d="DAV:">']
        for member in members:
            href = quote(PREFIX + member + ("/" if member in self.collections else ""))
            size = len(self.files.get(member, b""))
            body.append(
                f"<d:response><d:href>{href}</d:href><d:propstat><d:prop>"
                f"<d:getcontentlength>{size}</d:getcontentlength>"
                f"</d:prop></d:propstat></d:response>"
            )
        body.append("</d:multistatus>")
        return httpx.Response(207, content="".join(body).encode())

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = unquote(request.url.path)[len(PREFIX):] or "/"
        path = path.rstrip("/") or "/"
        self.requests.append((request.method, path))
        if self.status_override is not None:
            return httpx.Response(self.status_override)

        parent = path.rsplit("/", 1)[0] or "/"
        if request.method == "PROPFIND":
            return self._propfind(path, request.headers.get("Depth", "1"))
        if request.method == "PUT":
            if parent not in self.collections:
                return httpx.Response(409)
            self.files[path] = request.read()
            return httpx.Response(201)
        if request.method == "DELETE":
            if path in self.files:
                del self.files[path]
                return httpx.Response(204)
            if path in self.collections:
                self.collections = {c for c in self.collections if not c.startswith(path)}
                self.files = {f: b for f, b in self.files.items() if not f.startswith(path + "/")}
                return httpx.Response(204)
            return httpx.Response(404)
        if request.method == "MKCOL":
            if path in self.collections:
                return httpx.Response(405)
            if parent not in self.collections:
                return httpx.Response(409)
            self.collections.add(path)
            return httpx.Response(201)
        return httpx.Response(405)


class TestWebDAVTransport:
    """Tests for WebDAVTransport implementation."""

    @pytest.fixture
    def server(self, httpx_mock: HTTPXMock) -> FakeDAVServer:
        """In-memory DAV server answering every request."""
        server = FakeDAVServer()
        httpx_mock.add_callback(server.handle, is_reusable=True)
        return server

    @pytest.fixture
    def transport(self, server: FakeDAVServer) -> WebDAVTransport:
        """Create a connected WebDAVTransport."""
        transport = WebDAVTransport(BASE_URL, username="u", password="p")
        transport.connect()
        return transport

    def test_connect_probes_root(self, transport: WebDAVTransport, server: FakeDAVServer) -> None:
        """connect() issues a depth 0 PROPFIND on the base URL."""
        assert server.requests[0] == ("PROPFIND", "/")

    def test_connect_auth_failure(self, server: FakeDAVServer) -> None:
        """401 on connect raises AuthError."""
        server.status_override = 401
        transport = WebDAVTransport(BASE_URL)
        with pytest.raises(AuthError):
            transport.connect()

    def test_connect_server_error(self, server: FakeDAVServer) -> None:
        """5xx on connect is reported as a network failure."""
        server.status_override = 503
        transport = WebDAVTransport(BASE_URL)
        with pytest.raises(NetworkError):
            transport.connect()

    def test_make_directory_and_upload(
        self, transport: WebDAVTransport, server: FakeDAVServer, tmp_path: Path
    ) -> None:
        """Recursive MKCOL creates parents; PUT stores the file."""
        source = tmp_path / "a b.txt"
        source.write_bytes(b"hello")

        transport.make_directory("/site/docs")
        transport.make_directory("/site/docs")
        transport.upload_file(source, "/site/docs/a b.txt")

        assert {"/site", "/site/docs"} <= server.collections
        assert server.files["/site/docs/a b.txt"] == b"hello"

    def test_make_directory_non_recursive_exists(self, transport: WebDAVTransport) -> None:
        """MKCOL on an existing collection raises AlreadyExistsError."""
        transport.make_directory("/x")
        with pytest.raises(AlreadyExistsError):
            transport.make_directory("/x", recursive=False)

    def test_delete_missing(self, transport: WebDAVTransport) -> None:
        """DELETE on a missing file raises NotFoundError."""
        with pytest.raises(NotFoundError):
            transport.delete("/nope.txt")

    def test_upload_bytes_and_delete(
        self, transport: WebDAVTransport, server: FakeDAVServer
    ) -> None:
        """upload_bytes() then delete() round trip on the server state."""
        transport.upload_bytes(b"probe", "/probe")
        assert server.files["/probe"] == b"probe"
        transport.delete("/probe")
        assert "/probe" not in server.files

    def test_remove_directory_best_effort(
        self, transport: WebDAVTransport, server: FakeDAVServer
    ) -> None:
        """Removing a collection drops it; a missing one is ignored."""
        transport.make_directory("/gone/deep")
        transport.remove_directory("/gone")
        transport.remove_directory("/gone")
        assert "/gone" not in server.collections

    def test_list_skips_own_entry(self, transport: WebDAVTransport) -> None:
        """list() returns children only, ordered by name."""
        transport.make_directory("/site/sub")
        transport.upload_bytes(b"22", "/site/b.txt")
        transport.upload_bytes(b"1", "/site/a.txt")

        entries = transport.list("/site")

        assert [(e.name, e.size) for e in entries] == [("a.txt", 1), ("b.txt", 2), ("sub", 0)]

    def test_list_missing_is_empty(self, transport: WebDAVTransport) -> None:
        """list() returns [] on errors."""
        assert transport.list("/missing") == []

    def test_from_config_host(self) -> None:
        """Without a url, the host is used over https."""
        from syncwatch.core.config import BackendKind, ServerConfig

        server = ServerConfig(kind=BackendKind.WEBDAV, remote_base_dir="/", host="dav.local")
        assert WebDAVTransport.from_config(server).location == "WebDAV: https://dav.local"
