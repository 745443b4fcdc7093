"""Run statistics shared by all workers."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of the run counters."""

    uploaded: int
    deleted: int
    dirs_created: int
    dirs_removed: int
    errors: int
    skipped_large: int
    safety_violations: int
    elapsed_s: float

    def summary(self) -> str:
        """One-line summary for the shutdown log."""
        return (
            f"Runtime {format_duration(self.elapsed_s)} | "
            f"uploaded={self.uploaded} deleted={self.deleted} "
            f"dirs_created={self.dirs_created} dirs_removed={self.dirs_removed} "
            f"skipped_large={self.skipped_large} "
            f"safety_violations={self.safety_violations} errors={self.errors}"
        )


def format_duration(seconds: float) -> str:
    """Format seconds as e.g. 1h02m03s, 4m05s or 6s."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


class RunStatistics:
    """Thread-safe, monotonically increasing counters for one run."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started = clock()
        self._lock = threading.Lock()
        self._uploaded = 0
        self._deleted = 0
        self._dirs_created = 0
        self._dirs_removed = 0
        self._errors = 0
        self._skipped_large = 0
        self._safety_violations = 0

    def record_upload(self) -> None:
        with self._lock:
            self._uploaded += 1

    def record_delete(self) -> None:
        with self._lock:
            self._deleted += 1

    def record_dir_created(self) -> None:
        with self._lock:
            self._dirs_created += 1

    def record_dir_removed(self) -> None:
        with self._lock:
            self._dirs_removed += 1

    def record_error(self) -> None:
        with self._lock:
            self._errors += 1

    def record_skipped_large(self) -> None:
        with self._lock:
            self._skipped_large += 1

    def record_safety_violation(self) -> None:
        """Count a safety violation. It also counts as an error."""
        with self._lock:
            self._safety_violations += 1
            self._errors += 1

    @property
    def errors(self) -> int:
        with self._lock:
            return self._errors

    def snapshot(self) -> StatsSnapshot:
        """Take a consistent copy of all counters."""
        with self._lock:
            return StatsSnapshot(
                uploaded=self._uploaded,
                deleted=self._deleted,
                dirs_created=self._dirs_created,
                dirs_removed=self._dirs_removed,
                errors=self._errors,
                skipped_large=self._skipped_large,
                safety_violations=self._safety_violations,
                elapsed_s=self._clock() - self._started,
            )
