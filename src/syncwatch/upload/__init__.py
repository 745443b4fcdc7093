"""Resumable chunked uploads with on-disk checkpoints."""

from syncwatch.upload.checkpoint import (
    CheckpointStore,
    PartRecord,
    UploadCheckpoint,
    checkpoint_filename,
)
from syncwatch.upload.resumable import (
    MultipartBackend,
    PartRange,
    ResumableUploader,
    part_ranges,
)

__all__ = [
    "CheckpointStore",
    "MultipartBackend",
    "PartRange",
    "PartRecord",
    "ResumableUploader",
    "UploadCheckpoint",
    "checkpoint_filename",
    "part_ranges",
]
