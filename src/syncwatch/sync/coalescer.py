"""Debounced coalescing of raw filesystem events.

This module provides:
- merge: Combines a pending action with a newer one for the same path
- EventCoalescer: Pending map with a single shared debounce deadline

Every event for a path replaces the pending action for that path, and every
accepted event pushes the shared deadline out by the debounce window. When
the deadline passes without new events, the whole map is drained into one
batch of WorkItems.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from syncwatch.sync.types import Action, RawEvent, WorkItem

if TYPE_CHECKING:
    from syncwatch.sync.ignore import IgnorePatterns

logger = logging.getLogger(__name__)


def merge(old: Action | None, new: Action) -> Action:
    """Merge a pending action with a newer one for the same path.

    The latest event wins: a file created then deleted within one window
    resolves to a delete, deleted then recreated resolves to an upload.
    """
    return new


class EventCoalescer:
    """Coalesces raw events per path and flushes them after a quiet period.

    Usage:
        coalescer = EventCoalescer(dispatcher.submit_batch, debounce_s=0.5)
        coalescer.start()
        coalescer.submit(RawEvent(RawEventType.MODIFIED, path))
        ...
        coalescer.stop()
    """

    def __init__(
        self,
        on_flush: Callable[[list[WorkItem]], None],
        debounce_s: float = 0.5,
        ignore: IgnorePatterns | None = None,
        base_path: Path | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the coalescer.

        Args:
            on_flush: Called with each drained batch, outside the lock.
            debounce_s: Quiet period after the last event before a flush.
            ignore: Patterns for paths to drop.
            base_path: Source root the ignore patterns are relative to.
            clock: Monotonic time source.
        """
        self._on_flush = on_flush
        self._debounce_s = debounce_s
        self._ignore = ignore
        self._base_path = base_path
        self._clock = clock

        self._pending: dict[str, Action] = {}
        self._deadline: float | None = None
        self._cond = threading.Condition()
        self._thread: threading.Thread | None = None
        self._running = False

    @property
    def pending_count(self) -> int:
        """Get number of paths waiting for the deadline."""
        with self._cond:
            return len(self._pending)

    @property
    def deadline(self) -> float | None:
        """Get the current flush deadline, None when nothing is pending."""
        with self._cond:
            return self._deadline

    def submit(self, event: RawEvent) -> bool:
        """Record a raw event.

        Returns:
            False if the path is ignored, True otherwise.
        """
        if (
            self._ignore is not None
            and self._base_path is not None
            and self._ignore.should_ignore(event.path, self._base_path)
        ):
            logger.debug(f"Ignored: {event.path}")
            return False

        key = str(event.path)
        with self._cond:
            self._pending[key] = merge(self._pending.get(key), event.action)
            self._deadline = self._clock() + self._debounce_s
            self._cond.notify_all()
        logger.debug(f"Event {event.event_type.value}: {event.path}")
        return True

    def _drain_locked(self) -> list[WorkItem]:
        batch = [
            WorkItem(local_path=Path(key), action=action)
            for key, action in self._pending.items()
        ]
        self._pending.clear()
        self._deadline = None
        return batch

    def _emit(self, batch: list[WorkItem]) -> None:
        if batch:
            logger.debug(f"Flushing {len(batch)} pending change(s)")
            self._on_flush(batch)

    def poll(self, now: float | None = None) -> list[WorkItem]:
        """Drain the pending map if the deadline has passed.

        Args:
            now: Current time on the coalescer clock, None to read the clock.

        Returns:
            The flushed batch, empty if the deadline has not passed.
        """
        with self._cond:
            now = self._clock() if now is None else now
            if self._deadline is None or now < self._deadline:
                return []
            batch = self._drain_locked()
        self._emit(batch)
        return batch

    def flush(self) -> list[WorkItem]:
        """Drain the pending map immediately, regardless of the deadline."""
        with self._cond:
            batch = self._drain_locked()
        self._emit(batch)
        return batch

    def start(self) -> None:
        """Start the background flusher thread."""
        with self._cond:
            if self._running:
                return
            self._running = True
        self._thread = threading.Thread(target=self._run, name="Coalescer", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        """Wait for the deadline and flush, until stopped."""
        while True:
            with self._cond:
                while self._running:
                    if self._deadline is None:
                        self._cond.wait()
                        continue
                    remaining = self._deadline - self._clock()
                    if remaining <= 0:
                        break
                    self._cond.wait(remaining)
                if not self._running:
                    return
                batch = self._drain_locked()

            try:
                self._emit(batch)
            except Exception:
                logger.exception("Unexpected error while flushing changes")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the flusher, cancelling the deadline and discarding pending events."""
        with self._cond:
            self._running = False
            discarded = len(self._pending)
            self._pending.clear()
            self._deadline = None
            self._cond.notify_all()

        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

        if discarded:
            logger.info(f"Discarded {discarded} pending change(s) on shutdown")
