"""Shared types for the dispatch engine.

This module provides:
- RawEventType, RawEvent: Filesystem events as seen by the coalescer
- Action: Remote operation a path resolves to
- WorkItem: Immutable unit of work handed to the dispatcher
- SafetyViolation, StrictSafetyViolation: Remote root boundary errors
- Exit codes used by the CLI
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path

# Process exit codes
EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_STRICT_VIOLATION = 2
EXIT_CONNECTION = 3
EXIT_AUTH = 4
EXIT_PERMISSION = 5


class RawEventType(Enum):
    """Type of raw filesystem event."""

    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    DIRECTORY_CREATED = "directory_created"
    DIRECTORY_REMOVED = "directory_removed"


class Action(Enum):
    """Remote operation for a path."""

    UPLOAD = auto()
    DELETE = auto()
    MAKE_DIR = auto()
    REMOVE_DIR = auto()


ACTION_FOR_EVENT: dict[RawEventType, Action] = {
    RawEventType.CREATED: Action.UPLOAD,
    RawEventType.MODIFIED: Action.UPLOAD,
    RawEventType.REMOVED: Action.DELETE,
    RawEventType.DIRECTORY_CREATED: Action.MAKE_DIR,
    RawEventType.DIRECTORY_REMOVED: Action.REMOVE_DIR,
}


@dataclass(frozen=True)
class RawEvent:
    """A filesystem event before coalescing."""

    event_type: RawEventType
    path: Path

    @property
    def action(self) -> Action:
        """Action this event maps to."""
        return ACTION_FOR_EVENT[self.event_type]


@dataclass(frozen=True)
class WorkItem:
    """A coalesced action on one local path."""

    local_path: Path
    action: Action

    def __str__(self) -> str:
        return f"{self.action.name} {self.local_path}"


class SafetyViolation(Exception):
    """A computed remote path escapes the remote root."""

    def __init__(self, action: Action, remote_path: str, remote_root: str) -> None:
        self.action = action
        self.remote_path = remote_path
        self.remote_root = remote_root
        super().__init__(
            f"{action.name} target {remote_path} is outside remote root {remote_root}"
        )


class StrictSafetyViolation(SafetyViolation):
    """A safety violation on a destructive action with strict mode on."""
