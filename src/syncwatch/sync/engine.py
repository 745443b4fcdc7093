"""Sync engine wiring the watcher, coalescer, dispatcher and transport.

This module provides:
- SyncEngine: One watch session from startup check to shutdown summary
- StartupError and subclasses: Startup failures carrying their exit code
"""

from __future__ import annotations

import logging
import os
import posixpath
import threading
import time
from collections.abc import Callable
from pathlib import Path

from syncwatch.core.config import WatchConfig
from syncwatch.core.paths import normalize_remote
from syncwatch.sync.coalescer import EventCoalescer
from syncwatch.sync.connection import ConnectionManager
from syncwatch.sync.dispatcher import BoundedDispatcher
from syncwatch.sync.ignore import IGNORE_FILE, IgnorePatterns
from syncwatch.sync.operations import SyncOperations
from syncwatch.sync.stats import RunStatistics, StatsSnapshot
from syncwatch.sync.types import (
    EXIT_AUTH,
    EXIT_CONNECTION,
    EXIT_OK,
    EXIT_PERMISSION,
    EXIT_STRICT_VIOLATION,
    RawEvent,
    RawEventType,
    StrictSafetyViolation,
)
from syncwatch.sync.watcher import FileWatcher
from syncwatch.transports import create_transport
from syncwatch.transports.base import AuthError, NetworkError, Transport, TransportError

logger = logging.getLogger(__name__)

MONITOR_INTERVAL_S = 5.0
PROBE_PAYLOAD = b"syncwatch write probe\n"


class StartupError(Exception):
    """The remote failed the startup check."""

    exit_code = EXIT_CONNECTION


class RemoteUnreachable(StartupError):
    """Connecting to the remote failed."""

    exit_code = EXIT_CONNECTION


class RemoteAuthFailed(StartupError):
    """The remote rejected the credentials."""

    exit_code = EXIT_AUTH


class RemotePermissionDenied(StartupError):
    """Writing the probe file under the remote root failed."""

    exit_code = EXIT_PERMISSION


def build_ignore(config: WatchConfig, source_dir: Path) -> IgnorePatterns:
    """Build ignore patterns from config, the tree's ignore file and the checkpoint dir."""
    ignore = IgnorePatterns(config.ignore)
    ignore.load_from_file(source_dir / IGNORE_FILE)
    ignore.exclude_directory(config.checkpoint_dir)
    return ignore


class SyncEngine:
    """Runs one watch session.

    Usage:
        engine = SyncEngine(config)
        engine.check_remote()
        engine.start()
        if config.initial_sync:
            engine.initial_sync()
        engine.wait()
        snapshot = engine.stop()
    """

    def __init__(
        self,
        config: WatchConfig,
        transport_factory: Callable[[], Transport] | None = None,
        dry_run: bool = False,
        strict_delete: bool = False,
        auth_flag: str | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Validated watch configuration.
            transport_factory: Creates an unconnected transport. Defaults to
                the adapter registered for config.server.kind.
            dry_run: Log intended remote actions without performing them.
            strict_delete: Exit on unsafe delete/rmdir targets.
            auth_flag: Forced SSH auth method ("key" or "password").

        Raises:
            ConfigError: If no transport can be built from the configuration.
        """
        self._config = config
        self._source_dir = Path(config.source_dir).resolve()
        self._dry_run = dry_run

        if transport_factory is None:
            transport = create_transport(config, auth_flag=auth_flag)

            def transport_factory() -> Transport:
                return transport

        self.stats = RunStatistics()
        self.connection = ConnectionManager(transport_factory, config.remote_root)
        self.operations = SyncOperations(
            connection=self.connection,
            source_dir=self._source_dir,
            remote_root=config.remote_root,
            stats=self.stats,
            dry_run=dry_run,
            delete_on_remote=config.delete_on_remote,
            strict_delete=strict_delete,
            max_file_size=config.max_file_size_bytes,
        )
        self.dispatcher = BoundedDispatcher(
            self.operations.execute, concurrency=config.concurrency, stats=self.stats
        )
        self.dispatcher.set_fatal_callback(self._on_fatal)
        self.ignore = build_ignore(config, self._source_dir)
        self.coalescer = EventCoalescer(
            self.dispatcher.submit_batch,
            debounce_s=config.debounce_s,
            ignore=self.ignore,
            base_path=self._source_dir,
        )

        self._watcher: FileWatcher | None = None
        self._stop_requested = threading.Event()
        self._monitor: threading.Thread | None = None
        self._stopped = False

    @property
    def source_dir(self) -> Path:
        """Get the resolved source directory."""
        return self._source_dir

    @property
    def fatal_error(self) -> StrictSafetyViolation | None:
        """Get the strict safety violation that ended the run, if any."""
        return self.dispatcher.fatal_error

    @property
    def exit_code(self) -> int:
        """Get the process exit code for the run so far."""
        return EXIT_STRICT_VIOLATION if self.fatal_error is not None else EXIT_OK

    def check_remote(self, probe_write: bool | None = None) -> None:
        """Connect, list the remote root and probe write permission.

        Args:
            probe_write: Write and delete a probe file. Defaults to True
                unless in dry-run mode.

        Raises:
            RemoteAuthFailed: If the credentials are rejected.
            RemoteUnreachable: If the remote cannot be reached.
            RemotePermissionDenied: If the probe file cannot be written.
        """
        if probe_write is None:
            probe_write = not self._dry_run

        try:
            transport = self.connection.ensure_connected()
        except AuthError as e:
            raise RemoteAuthFailed(str(e)) from e
        except TransportError as e:
            raise RemoteUnreachable(str(e)) from e

        root = normalize_remote(self._config.remote_root)
        entries = transport.list(root)
        logger.debug(f"Remote root {root} holds {len(entries)} entries")

        if not probe_write:
            logger.info("Connection OK (write probe skipped)")
            return

        probe = posixpath.join(root, f".syncwatch_probe_{int(time.time() * 1000)}")
        try:
            transport.upload_bytes(PROBE_PAYLOAD, probe)
            transport.delete(probe)
        except NetworkError as e:
            raise RemoteUnreachable(str(e)) from e
        except TransportError as e:
            raise RemotePermissionDenied(f"Cannot write under {root}: {e}") from e
        logger.info("Connection OK")

    def initial_sync(self) -> int:
        """Queue every non-ignored file of the source tree for upload.

        Returns:
            Number of files queued.
        """
        logger.info("Initial sync started")
        count = 0
        for dirpath, dirnames, filenames in os.walk(self._source_dir):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not self.ignore.should_ignore(current / d, self._source_dir)
            )
            for name in sorted(filenames):
                path = current / name
                if not path.is_file():
                    continue
                if self.coalescer.submit(RawEvent(RawEventType.MODIFIED, path)):
                    count += 1
        logger.info(f"Initial sync queued {count} file(s)")
        return count

    def start(self, watch: bool = True) -> None:
        """Start the flusher, the watcher and the debug monitor.

        Args:
            watch: Start the filesystem watcher.
        """
        self.coalescer.start()
        if watch:
            self._watcher = FileWatcher(self._source_dir, self.coalescer.submit)
            self._watcher.start()
            logger.info(f"Watching {self._source_dir}")
        if logger.isEnabledFor(logging.DEBUG):
            self._monitor = threading.Thread(target=self._monitor_loop, name="Monitor", daemon=True)
            self._monitor.start()

    def _monitor_loop(self) -> None:
        while not self._stop_requested.wait(MONITOR_INTERVAL_S):
            logger.debug(
                f"monitor queue={self.dispatcher.queue_size} "
                f"active={self.dispatcher.active_count} "
                f"pending={self.coalescer.pending_count}"
            )

    def _on_fatal(self, error: StrictSafetyViolation) -> None:
        self.request_stop()

    def request_stop(self) -> None:
        """Ask wait() to return. Safe to call from signal handlers."""
        self._stop_requested.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a stop is requested.

        Returns:
            True if a stop was requested, False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        # Short waits keep the main thread responsive to signals
        while not self._stop_requested.wait(0.5):
            if deadline is not None and time.monotonic() >= deadline:
                return False
        return True

    def stop(self) -> StatsSnapshot:
        """Shut down and return the final statistics.

        Pending events are discarded, in-flight workers finish, and the
        connection is closed once.
        """
        if not self._stopped:
            self._stopped = True
            self._stop_requested.set()
            self.coalescer.stop()
            if self._watcher is not None:
                self._watcher.stop()
            self.dispatcher.shutdown(wait=True)
            self.connection.close()
            if self._monitor is not None:
                self._monitor.join(timeout=1.0)

        snapshot = self.stats.snapshot()
        logger.info(snapshot.summary())
        return snapshot
