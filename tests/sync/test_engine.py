"""Tests for the sync engine over a local transport."""

from __future__ import annotations

import time
from pathlib import Path

import pytest

from syncwatch.core.config import WatchConfig
from syncwatch.sync.engine import (
    RemoteAuthFailed,
    RemotePermissionDenied,
    RemoteUnreachable,
    SyncEngine,
)
from syncwatch.sync.types import Action, RawEvent, RawEventType, WorkItem
from syncwatch.transports import AuthError, LocalTransport, TransferError


class RejectingTransport(LocalTransport):
    """Local transport whose credentials are always rejected."""

    def connect(self) -> None:
        raise AuthError("Login rejected")


class ReadOnlyTransport(LocalTransport):
    """Local transport refusing every write."""

    def upload_bytes(self, payload, remote_path: str) -> None:
        raise TransferError("Permission denied", remote_path)


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class TestCheckRemote:
    """Tests for SyncEngine.check_remote()."""

    def test_ok_removes_probe(self, watch_config: WatchConfig, remote_dir: Path) -> None:
        """Should connect, write and delete the probe file."""
        engine = SyncEngine(watch_config)
        try:
            engine.check_remote()
        finally:
            engine.stop()

        assert (remote_dir / "site").is_dir()
        assert list((remote_dir / "site").iterdir()) == []

    def test_unreachable(self, watch_config: WatchConfig, tmp_path: Path) -> None:
        """Should map a connect failure to exit code 3."""
        watch_config.server.local_root = str(tmp_path / "missing")
        engine = SyncEngine(watch_config)

        with pytest.raises(RemoteUnreachable) as exc_info:
            engine.check_remote()
        assert exc_info.value.exit_code == 3

    def test_auth_failed(self, watch_config: WatchConfig, remote_dir: Path) -> None:
        """Should map rejected credentials to exit code 4."""
        engine = SyncEngine(watch_config, transport_factory=lambda: RejectingTransport(remote_dir))

        with pytest.raises(RemoteAuthFailed) as exc_info:
            engine.check_remote()
        assert exc_info.value.exit_code == 4

    def test_permission_denied(self, watch_config: WatchConfig, remote_dir: Path) -> None:
        """Should map a failed probe write to exit code 5."""
        engine = SyncEngine(watch_config, transport_factory=lambda: ReadOnlyTransport(remote_dir))

        with pytest.raises(RemotePermissionDenied) as exc_info:
            engine.check_remote()
        assert exc_info.value.exit_code == 5

    def test_dry_run_skips_probe(self, watch_config: WatchConfig, remote_dir: Path) -> None:
        """Should not write the probe in dry-run mode."""
        engine = SyncEngine(
            watch_config,
            transport_factory=lambda: ReadOnlyTransport(remote_dir),
            dry_run=True,
        )
        engine.check_remote()
        engine.stop()


class TestInitialSync:
    """Tests for SyncEngine.initial_sync()."""

    def test_uploads_non_ignored_files(
        self, watch_config: WatchConfig, source_dir: Path, remote_dir: Path
    ) -> None:
        """Should queue every non-ignored file and upload it on flush."""
        (source_dir / "a.txt").write_text("a")
        (source_dir / "sub").mkdir()
        (source_dir / "sub" / "b.txt").write_text("b")
        (source_dir / ".git").mkdir()
        (source_dir / ".git" / "config").write_text("x")
        (source_dir / "debug.log").write_text("x")

        engine = SyncEngine(watch_config)
        try:
            assert engine.initial_sync() == 2
            engine.coalescer.flush()
            assert engine.dispatcher.wait_idle(timeout=5.0)
        finally:
            snapshot = engine.stop()

        assert (remote_dir / "site" / "a.txt").read_text() == "a"
        assert (remote_dir / "site" / "sub" / "b.txt").read_text() == "b"
        assert not (remote_dir / "site" / ".git").exists()
        assert snapshot.uploaded == 2
        assert engine.exit_code == 0

    def test_checkpoint_dir_excluded(self, watch_config: WatchConfig, source_dir: Path) -> None:
        """Should never sync the checkpoint directory."""
        watch_config.checkpoint_dir = source_dir / ".syncwatch" / "checkpoints"
        watch_config.checkpoint_dir.mkdir(parents=True)
        (watch_config.checkpoint_dir / "a.json").write_text("{}")
        (source_dir / "a.txt").write_text("a")

        engine = SyncEngine(watch_config)
        assert engine.initial_sync() == 1
        engine.stop()

    def test_ignore_file(self, watch_config: WatchConfig, source_dir: Path) -> None:
        """Should honor patterns from the tree's ignore file."""
        (source_dir / ".syncwatchignore").write_text("*.secret\n")
        (source_dir / "keys.secret").write_text("x")

        engine = SyncEngine(watch_config)
        assert engine.initial_sync() == 1
        engine.stop()


class TestRun:
    """Tests for a running engine."""

    def test_watch_uploads_changes(
        self, watch_config: WatchConfig, source_dir: Path, remote_dir: Path
    ) -> None:
        """Should upload a file created while watching."""
        engine = SyncEngine(watch_config)
        engine.check_remote()
        engine.start()
        try:
            (source_dir / "live.txt").write_text("live")
            assert wait_for(lambda: (remote_dir / "site" / "live.txt").exists())
        finally:
            snapshot = engine.stop()

        assert snapshot.uploaded >= 1
        assert snapshot.errors == 0

    def test_strict_violation_stops_run(
        self, watch_config: WatchConfig, source_dir: Path
    ) -> None:
        """Should request a stop and exit with code 2 on a strict violation."""
        watch_config.delete_on_remote = True
        outside = source_dir.parent / "outside.txt"
        engine = SyncEngine(watch_config, strict_delete=True)

        engine.dispatcher.submit_batch([WorkItem(outside, Action.DELETE)])

        assert engine.wait(timeout=5.0)
        assert engine.fatal_error is not None
        assert engine.exit_code == 2
        snapshot = engine.stop()
        assert snapshot.safety_violations == 1

    def test_stop_is_idempotent(self, watch_config: WatchConfig) -> None:
        """Should tolerate repeated stops."""
        engine = SyncEngine(watch_config)
        engine.start(watch=False)
        engine.stop()
        assert engine.stop().errors == 0

    def test_wait_timeout(self, watch_config: WatchConfig) -> None:
        """Should return False when no stop is requested in time."""
        engine = SyncEngine(watch_config)
        assert engine.wait(timeout=0.1) is False
        engine.request_stop()
        assert engine.wait(timeout=0.1) is True
        engine.stop()


class TestScenarios:
    """End-to-end flows through coalescer, dispatcher and operations."""

    def test_create_then_delete_not_propagated(
        self, watch_config: WatchConfig, source_dir: Path
    ) -> None:
        """Should coalesce to one delete and leave the remote alone when deletes are off."""
        path = source_dir / "a" / "b.txt"
        engine = SyncEngine(watch_config)
        engine.coalescer.submit(RawEvent(RawEventType.CREATED, path))
        engine.coalescer.submit(RawEvent(RawEventType.REMOVED, path))

        batch = engine.coalescer.flush()
        assert engine.dispatcher.wait_idle(timeout=5.0)
        snapshot = engine.stop()

        assert batch == [WorkItem(path, Action.DELETE)]
        assert engine.connection.connect_count == 0
        assert (snapshot.uploaded, snapshot.deleted, snapshot.errors) == (0, 0, 0)

    def test_five_uploads_with_two_workers(
        self, watch_config: WatchConfig, source_dir: Path, remote_dir: Path
    ) -> None:
        """Should upload every file without exceeding the worker limit."""
        for i in range(5):
            (source_dir / f"f{i}.txt").write_text(str(i))

        engine = SyncEngine(watch_config)
        assert engine.initial_sync() == 5
        engine.coalescer.flush()
        assert engine.dispatcher.wait_idle(timeout=5.0)
        snapshot = engine.stop()

        assert snapshot.uploaded == 5
        assert engine.dispatcher.peak_active <= 2
        assert sorted(p.name for p in (remote_dir / "site").iterdir()) == [
            f"f{i}.txt" for i in range(5)
        ]
