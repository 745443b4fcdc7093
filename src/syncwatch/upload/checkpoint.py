"""On-disk checkpoints for resumable multipart uploads.

This module provides:
- PartRecord: One durably stored part (index + backend tag)
- UploadCheckpoint: Upload id plus the parts already stored remotely
- CheckpointStore: JSON record per remote key under a local directory

A record is written atomically (temp file, fsync, rename) so a crash
leaves either the previous or the new version, never a torn file.
Unreadable records are reported as missing.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class PartRecord:
    """A part confirmed by the backend."""

    part_index: int
    part_tag: str


@dataclass
class UploadCheckpoint:
    """Progress of one multipart upload.

    Attributes:
        upload_id: Backend multipart session id.
        parts: Parts already stored remotely, in completion order.
        source_size: Size of the local file when the session began.
        source_mtime_ns: Modification time of the local file when the session began.
    """

    upload_id: str
    parts: list[PartRecord] = field(default_factory=list)
    source_size: int | None = None
    source_mtime_ns: int | None = None

    @property
    def part_indexes(self) -> set[int]:
        """Indexes of parts already stored."""
        return {part.part_index for part in self.parts}

    def add_part(self, part_index: int, part_tag: str) -> None:
        """Record a stored part, replacing an earlier record for the same index."""
        self.parts = [p for p in self.parts if p.part_index != part_index]
        self.parts.append(PartRecord(part_index=part_index, part_tag=part_tag))

    def sorted_parts(self) -> list[PartRecord]:
        """Parts ordered by index, as required for completion."""
        return sorted(self.parts, key=lambda p: p.part_index)

    def matches_source(self, size: int, mtime_ns: int) -> bool:
        """Check the recorded parts were read from a file of this size and mtime."""
        return self.source_size == size and self.source_mtime_ns == mtime_ns

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk record shape."""
        record: dict[str, Any] = {
            "uploadId": self.upload_id,
            "parts": [{"partIndex": p.part_index, "partTag": p.part_tag} for p in self.parts],
        }
        if self.source_size is not None:
            record["sourceSize"] = self.source_size
        if self.source_mtime_ns is not None:
            record["sourceMtimeNs"] = self.source_mtime_ns
        return record

    @classmethod
    def from_dict(cls, data: Any) -> UploadCheckpoint:
        """Parse an on-disk record.

        Raises:
            ValueError: If the record does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ValueError("checkpoint record is not an object")
        upload_id = data.get("uploadId")
        if not isinstance(upload_id, str) or not upload_id:
            raise ValueError("checkpoint record has no uploadId")
        raw_parts = data.get("parts", [])
        if not isinstance(raw_parts, list):
            raise ValueError("checkpoint parts is not a list")

        checkpoint = cls(
            upload_id=upload_id,
            source_size=_optional_int(data.get("sourceSize")),
            source_mtime_ns=_optional_int(data.get("sourceMtimeNs")),
        )
        for raw in raw_parts:
            if not isinstance(raw, dict):
                raise ValueError("checkpoint part is not an object")
            index = raw.get("partIndex")
            tag = raw.get("partTag")
            if isinstance(index, bool) or not isinstance(index, int) or index < 1:
                raise ValueError(f"invalid partIndex: {index!r}")
            if not isinstance(tag, str):
                raise ValueError(f"invalid partTag for part {index}")
            checkpoint.add_part(index, tag)
        return checkpoint


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def checkpoint_filename(key: str) -> str:
    """Filesystem-safe file name for a remote key.

    Unsafe characters become underscores; a digest of the original key is
    appended so keys differing only in unsafe characters stay distinct.
    """
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]
    return f"{_UNSAFE_CHARS.sub('_', key)}-{digest}.json"


class CheckpointStore:
    """Directory of upload checkpoints keyed by remote key."""

    def __init__(self, directory: Path | str) -> None:
        """Initialize the store.

        Args:
            directory: Directory holding checkpoint records (created lazily).
        """
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        """Directory holding checkpoint records."""
        return self._directory

    def path_for(self, key: str) -> Path:
        """Get the record path for a remote key."""
        return self._directory / checkpoint_filename(key)

    def load(self, key: str) -> UploadCheckpoint | None:
        """Load the checkpoint for a key.

        Returns:
            The checkpoint, or None if missing or corrupt.
        """
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return UploadCheckpoint.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable checkpoint {path.name}: {e}")
            return None

    def save(self, key: str, checkpoint: UploadCheckpoint) -> None:
        """Durably persist the checkpoint for a key."""
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(checkpoint.to_dict(), f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> bool:
        """Delete the checkpoint for a key.

        Returns:
            True if a record was removed, False if none existed.
        """
        path = self.path_for(key)
        if path.exists():
            path.unlink()
            return True
        return False
