"""Shared, lazily established remote connection.

All workers share one transport. The first caller of ensure_connected()
establishes it; callers arriving while the connect is in flight wait on the
same future and receive the same transport or the same error.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future

from syncwatch.core.paths import normalize_remote
from syncwatch.transports.base import Transport, TransportError

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Owns the shared transport for a run."""

    def __init__(self, factory: Callable[[], Transport], remote_root: str) -> None:
        """Initialize the manager.

        Args:
            factory: Creates an unconnected transport.
            remote_root: Remote root created after connecting.
        """
        self._factory = factory
        self._remote_root = normalize_remote(remote_root)
        self._lock = threading.Lock()
        self._transport: Transport | None = None
        self._pending: Future[Transport] | None = None
        self._closed = False
        self._connect_count = 0

    @property
    def is_connected(self) -> bool:
        """Check if a transport is established."""
        with self._lock:
            return self._transport is not None

    @property
    def connect_count(self) -> int:
        """Get number of connect attempts made."""
        with self._lock:
            return self._connect_count

    def ensure_connected(self) -> Transport:
        """Get the shared transport, connecting it on first use.

        Returns:
            Connected transport.

        Raises:
            TransportError: If connecting fails. The next call retries.
        """
        with self._lock:
            if self._closed:
                raise TransportError("Connection manager is closed")
            if self._transport is not None:
                return self._transport
            if self._pending is not None:
                future = self._pending
                owner = False
            else:
                future = Future()
                self._pending = future
                self._connect_count += 1
                owner = True

        if not owner:
            return future.result()

        try:
            transport = self._connect()
        except BaseException as e:
            with self._lock:
                self._pending = None
            future.set_exception(e)
            raise

        with self._lock:
            self._pending = None
            closed = self._closed
            if not closed:
                self._transport = transport

        if closed:
            # close() ran while connecting; nobody else will close this one
            self._close_transport(transport)
            error = TransportError("Connection manager is closed")
            future.set_exception(error)
            raise error

        future.set_result(transport)
        return transport

    def _connect(self) -> Transport:
        transport = self._factory()
        logger.info(f"Connecting to {transport.location}")
        transport.connect()
        try:
            transport.make_directory(self._remote_root, recursive=True)
        except TransportError as e:
            logger.debug(f"Could not ensure remote root {self._remote_root}: {e}")
        logger.info(f"Connected to {transport.location}")
        return transport

    def close(self) -> None:
        """Close the shared transport. Later calls are no-ops."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            transport, self._transport = self._transport, None

        if transport is not None:
            self._close_transport(transport)

    def _close_transport(self, transport: Transport) -> None:
        try:
            transport.close()
        except TransportError as e:
            logger.warning(f"Error closing connection: {e}")
        else:
            logger.debug(f"Closed connection to {transport.location}")
