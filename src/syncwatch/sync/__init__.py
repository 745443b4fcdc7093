"""Change-coalescing dispatch engine.

This package provides:
- types: RawEvent, Action, WorkItem, safety violations, exit codes
- ignore: IgnorePatterns
- coalescer: EventCoalescer
- dispatcher: BoundedDispatcher
- connection: ConnectionManager
- operations: SyncOperations
- stats: RunStatistics
- watcher: FileWatcher
- engine: SyncEngine
"""

from syncwatch.sync.coalescer import EventCoalescer, merge
from syncwatch.sync.connection import ConnectionManager
from syncwatch.sync.dispatcher import BoundedDispatcher
from syncwatch.sync.engine import (
    RemoteAuthFailed,
    RemotePermissionDenied,
    RemoteUnreachable,
    StartupError,
    SyncEngine,
)
from syncwatch.sync.ignore import IgnorePatterns
from syncwatch.sync.operations import SyncOperations
from syncwatch.sync.stats import RunStatistics, StatsSnapshot
from syncwatch.sync.types import (
    Action,
    RawEvent,
    RawEventType,
    SafetyViolation,
    StrictSafetyViolation,
    WorkItem,
)
from syncwatch.sync.watcher import FileWatcher

__all__ = [
    # Types
    "Action",
    "RawEvent",
    "RawEventType",
    "SafetyViolation",
    "StrictSafetyViolation",
    "WorkItem",
    # Components
    "BoundedDispatcher",
    "ConnectionManager",
    "EventCoalescer",
    "FileWatcher",
    "IgnorePatterns",
    "RunStatistics",
    "StatsSnapshot",
    "SyncOperations",
    "merge",
    # Engine
    "RemoteAuthFailed",
    "RemotePermissionDenied",
    "RemoteUnreachable",
    "StartupError",
    "SyncEngine",
]
