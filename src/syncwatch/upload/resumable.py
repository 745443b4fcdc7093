"""Resumable multipart upload protocol.

This module provides:
- MultipartBackend: Protocol a backend implements to support multipart uploads
- ResumableUploader: Splits a file into parts and uploads the missing ones
- part_ranges: Byte ranges of the parts of a file

Every stored part is checkpointed before the next one starts, so after a
crash the upload resumes at the first missing part instead of restarting.
Sessions are never aborted automatically: a failed upload keeps its
checkpoint so the next attempt can resume it.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from syncwatch.core.config import DEFAULT_MULTIPART_THRESHOLD, DEFAULT_PART_SIZE
from syncwatch.upload.checkpoint import CheckpointStore, PartRecord, UploadCheckpoint

logger = logging.getLogger(__name__)


class MultipartBackend(Protocol):
    """Backend operations needed by the resumable protocol."""

    def create_multipart(self, key: str) -> str:
        """Begin a multipart session and return its upload id."""
        ...

    def upload_part(self, key: str, upload_id: str, part_index: int, body: bytes) -> str:
        """Store one part and return its integrity tag."""
        ...

    def complete_multipart(self, key: str, upload_id: str, parts: list[PartRecord]) -> None:
        """Assemble the stored parts, ordered by index."""
        ...


@dataclass(frozen=True)
class PartRange:
    """Contiguous byte range of one part (1-based index)."""

    index: int
    offset: int
    length: int


def part_ranges(size: int, part_size: int) -> list[PartRange]:
    """Split a file size into fixed-size parts.

    Args:
        size: Total size in bytes.
        part_size: Size of every part except possibly the last.

    Returns:
        Ranges for parts 1..ceil(size / part_size).
    """
    if part_size <= 0:
        raise ValueError("part_size must be positive")
    count = math.ceil(size / part_size)
    return [
        PartRange(
            index=i + 1,
            offset=i * part_size,
            length=min(part_size, size - i * part_size),
        )
        for i in range(count)
    ]


# Type alias for part progress callback (part_index, total_parts)
PartCallback = Callable[[int, int], None]


class ResumableUploader:
    """Uploads large files as checkpointed multipart uploads.

    Usage:
        uploader = ResumableUploader(backend, CheckpointStore(dir))
        if uploader.should_use_multipart(size):
            uploader.upload(local_path, key)
    """

    def __init__(
        self,
        backend: MultipartBackend,
        checkpoints: CheckpointStore,
        part_size: int = DEFAULT_PART_SIZE,
        threshold: int = DEFAULT_MULTIPART_THRESHOLD,
        on_part: PartCallback | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            backend: Multipart-capable backend.
            checkpoints: Store for per-key progress records.
            part_size: Bytes per part (last part may be shorter).
            threshold: File size from which multipart is used.
            on_part: Optional callback after each part is stored.
        """
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        self._backend = backend
        self._checkpoints = checkpoints
        self._part_size = part_size
        self._threshold = threshold
        self._on_part = on_part

    @property
    def part_size(self) -> int:
        """Bytes per part."""
        return self._part_size

    def should_use_multipart(self, size: int) -> bool:
        """Check if a payload of this size goes through multipart."""
        return size >= self._threshold and size > 0

    def upload(self, local_path: Path, key: str) -> UploadCheckpoint:
        """Upload a file, resuming from an existing checkpoint if present.

        Args:
            local_path: File to upload.
            key: Remote object key.

        Returns:
            The final checkpoint state (already deleted from the store).

        Raises:
            Exception: Whatever the backend raises; the checkpoint is kept.
        """
        st = local_path.stat()
        size = st.st_size
        ranges = part_ranges(size, self._part_size)

        checkpoint = self._checkpoints.load(key)
        if checkpoint is not None and not self._is_resumable(
            checkpoint, size, st.st_mtime_ns, ranges
        ):
            # Stored parts hold bytes of an older version of the file
            logger.warning(
                f"Local file changed since upload {checkpoint.upload_id} of {key} began, "
                "starting a new session"
            )
            checkpoint = None

        if checkpoint is None:
            upload_id = self._backend.create_multipart(key)
            checkpoint = UploadCheckpoint(
                upload_id=upload_id, source_size=size, source_mtime_ns=st.st_mtime_ns
            )
            self._checkpoints.save(key, checkpoint)
            logger.debug(f"Started multipart upload for {key} ({len(ranges)} parts)")
        else:
            done = checkpoint.part_indexes
            logger.info(
                f"Resuming upload of {key}: {len(done)}/{len(ranges)} parts already stored"
            )

        with open(local_path, "rb") as f:
            for part in ranges:
                if part.index in checkpoint.part_indexes:
                    continue

                f.seek(part.offset)
                body = f.read(part.length)
                tag = self._backend.upload_part(key, checkpoint.upload_id, part.index, body)

                checkpoint.add_part(part.index, tag)
                self._checkpoints.save(key, checkpoint)
                logger.debug(f"Stored part {part.index}/{len(ranges)} of {key}")

                if self._on_part:
                    self._on_part(part.index, len(ranges))

        self._backend.complete_multipart(key, checkpoint.upload_id, checkpoint.sorted_parts())
        self._checkpoints.delete(key)
        logger.debug(f"Completed multipart upload of {key}")
        return checkpoint

    def _is_resumable(
        self, checkpoint: UploadCheckpoint, size: int, mtime_ns: int, ranges: list[PartRange]
    ) -> bool:
        if not checkpoint.matches_source(size, mtime_ns):
            return False
        return checkpoint.part_indexes <= {part.index for part in ranges}
