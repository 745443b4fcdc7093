"""Bounded concurrent dispatch of work items.

This module provides:
- BoundedDispatcher: FIFO queue drained by at most C worker threads

Workers are started on demand. When a worker finishes an item it releases
its slot and, if the queue is not empty, starts exactly one replacement, so
the pool never polls and never exceeds its concurrency limit.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from syncwatch.sync.types import StrictSafetyViolation, WorkItem

if TYPE_CHECKING:
    from syncwatch.sync.stats import RunStatistics

logger = logging.getLogger(__name__)


class BoundedDispatcher:
    """Runs a handler over work items with bounded concurrency.

    Usage:
        dispatcher = BoundedDispatcher(operations.execute, concurrency=2, stats=stats)
        dispatcher.submit_batch(items)
        dispatcher.wait_idle()
        dispatcher.shutdown()
    """

    def __init__(
        self,
        handler: Callable[[WorkItem], None],
        concurrency: int = 2,
        stats: RunStatistics | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            handler: Called once per work item on a worker thread.
            concurrency: Maximum number of concurrently running workers.
            stats: Optional statistics to count unexpected failures in.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._handler = handler
        self._concurrency = concurrency
        self._stats = stats

        self._queue: deque[WorkItem] = deque()
        self._active = 0
        self._peak_active = 0
        self._accepting = True
        self._fatal_error: StrictSafetyViolation | None = None
        self._cond = threading.Condition()
        self._worker_seq = 0
        self._on_fatal: Callable[[StrictSafetyViolation], None] | None = None

    @property
    def concurrency(self) -> int:
        """Get the concurrency limit."""
        return self._concurrency

    @property
    def active_count(self) -> int:
        """Get number of running workers."""
        with self._cond:
            return self._active

    @property
    def queue_size(self) -> int:
        """Get number of queued items."""
        with self._cond:
            return len(self._queue)

    @property
    def peak_active(self) -> int:
        """Get the highest number of workers seen running at once."""
        with self._cond:
            return self._peak_active

    @property
    def fatal_error(self) -> StrictSafetyViolation | None:
        """Get the strict safety violation that stopped dispatch, if any."""
        with self._cond:
            return self._fatal_error

    def set_fatal_callback(self, callback: Callable[[StrictSafetyViolation], None]) -> None:
        """Set callback invoked once when a fatal error is recorded."""
        self._on_fatal = callback

    def submit_batch(self, items: Iterable[WorkItem]) -> int:
        """Queue items and start workers up to the concurrency limit.

        Args:
            items: Work items, in the order they should be started.

        Returns:
            Number of items queued (0 once shut down or after a fatal error).
        """
        batch = list(items)
        with self._cond:
            if not self._accepting or self._fatal_error is not None:
                if batch:
                    logger.warning(f"Dispatcher closed, dropping {len(batch)} item(s)")
                return 0
            self._queue.extend(batch)
            while self._queue and self._active < self._concurrency:
                self._start_worker_locked()
        if batch:
            logger.debug(f"Queued {len(batch)} item(s)")
        return len(batch)

    def _start_worker_locked(self) -> None:
        item = self._queue.popleft()
        self._active += 1
        self._peak_active = max(self._peak_active, self._active)
        self._worker_seq += 1
        thread = threading.Thread(
            target=self._run_item,
            args=(item,),
            name=f"Dispatcher-{self._worker_seq}",
            daemon=True,
        )
        thread.start()

    def _run_item(self, item: WorkItem) -> None:
        """Run one item, then hand the slot to the next queued item."""
        fatal: StrictSafetyViolation | None = None
        try:
            self._handler(item)
        except StrictSafetyViolation as e:
            fatal = e
        except Exception:
            logger.exception(f"Task error: {item}")
            if self._stats is not None:
                self._stats.record_error()
        finally:
            with self._cond:
                self._active -= 1
                if fatal is not None and self._fatal_error is None:
                    self._fatal_error = fatal
                    dropped = len(self._queue)
                    self._queue.clear()
                    logger.error(f"Fatal: {fatal}. Dropped {dropped} queued item(s)")
                else:
                    fatal = None
                if self._queue and self._fatal_error is None:
                    self._start_worker_locked()
                self._cond.notify_all()

        if fatal is not None and self._on_fatal is not None:
            self._on_fatal(fatal)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no item is queued or running.

        Args:
            timeout: Maximum seconds to wait, None to wait forever.

        Returns:
            True if idle, False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._queue or self._active:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        """Stop accepting items and let in-flight workers finish.

        Args:
            wait: Block until queued and running items are done.
            timeout: Maximum seconds to wait.
        """
        with self._cond:
            self._accepting = False
        if wait:
            if not self.wait_idle(timeout):
                logger.warning(f"{self.active_count} worker(s) still running at shutdown")
