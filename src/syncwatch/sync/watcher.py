"""File system watcher feeding raw events to the coalescer.

This module provides:
- RawEventHandler: Translates watchdog events into RawEvents
- FileWatcher: Recursive watchdog observer on the source directory

Moves are split into a removal of the source and a creation of the
destination. Directory-modified events carry no information for the remote
and are dropped.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from syncwatch.sync.types import RawEvent, RawEventType

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver


def _as_path(raw: str | bytes) -> Path:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return Path(raw)


def translate_event(event: FileSystemEvent) -> list[RawEvent]:
    """Translate one watchdog event into zero or more raw events."""
    src = _as_path(event.src_path)
    if isinstance(event, DirMovedEvent):
        return [
            RawEvent(RawEventType.DIRECTORY_REMOVED, src),
            RawEvent(RawEventType.DIRECTORY_CREATED, _as_path(event.dest_path)),
        ]
    if isinstance(event, FileMovedEvent):
        return [
            RawEvent(RawEventType.REMOVED, src),
            RawEvent(RawEventType.CREATED, _as_path(event.dest_path)),
        ]
    if isinstance(event, DirCreatedEvent):
        return [RawEvent(RawEventType.DIRECTORY_CREATED, src)]
    if isinstance(event, DirDeletedEvent):
        return [RawEvent(RawEventType.DIRECTORY_REMOVED, src)]
    if isinstance(event, FileCreatedEvent):
        return [RawEvent(RawEventType.CREATED, src)]
    if isinstance(event, FileModifiedEvent):
        return [RawEvent(RawEventType.MODIFIED, src)]
    if isinstance(event, FileDeletedEvent):
        return [RawEvent(RawEventType.REMOVED, src)]
    return []


class RawEventHandler(FileSystemEventHandler):
    """Event handler forwarding translated events to a sink."""

    def __init__(self, sink: Callable[[RawEvent], object]) -> None:
        """Initialize the handler.

        Args:
            sink: Receives each raw event, typically EventCoalescer.submit.
        """
        super().__init__()
        self._sink = sink

    def _handle_event(self, event: FileSystemEvent) -> None:
        for raw in translate_event(event):
            self._sink(raw)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event."""
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deleted event."""
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event."""
        self._handle_event(event)


class FileWatcher:
    """Watches a directory tree recursively."""

    def __init__(self, watch_path: Path, sink: Callable[[RawEvent], object]) -> None:
        """Initialize the file watcher.

        Args:
            watch_path: Directory to watch.
            sink: Receives each raw event.

        Raises:
            ValueError: If watch_path is not a directory.
        """
        self._watch_path = Path(watch_path).resolve()
        if not self._watch_path.is_dir():
            raise ValueError(f"Watch path must be a directory: {watch_path}")

        self._handler = RawEventHandler(sink)
        self._observer: BaseObserver = Observer()
        self._running = False

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def start(self) -> None:
        """Start watching for changes."""
        if self._running:
            return

        self._observer.schedule(self._handler, str(self._watch_path), recursive=True)
        self._observer.start()
        self._running = True

    def stop(self) -> None:
        """Stop watching for changes."""
        if not self._running:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._running = False

    def __enter__(self) -> FileWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
