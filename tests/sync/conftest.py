"""Shared fixtures for dispatch engine tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from syncwatch.core.config import BackendKind, ServerConfig, WatchConfig


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at 0."""
    return FakeClock()


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Watched source directory."""
    path = (tmp_path / "src").resolve()
    path.mkdir()
    return path


@pytest.fixture
def remote_dir(tmp_path: Path) -> Path:
    """Directory the local transport maps remote paths under."""
    path = tmp_path / "remote"
    path.mkdir()
    return path


@pytest.fixture
def watch_config(source_dir: Path, remote_dir: Path, tmp_path: Path) -> WatchConfig:
    """Local-backend configuration with remote root /site."""
    return WatchConfig(
        source_dir=source_dir,
        server=ServerConfig(
            kind=BackendKind.LOCAL, remote_base_dir="/site", local_root=str(remote_dir)
        ),
        debounce_ms=50,
        checkpoint_dir=tmp_path / "checkpoints",
    )
