"""Tests for multipart upload checkpoints."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from syncwatch.upload import CheckpointStore, UploadCheckpoint, checkpoint_filename


class TestCheckpointFilename:
    """Tests for checkpoint_filename()."""

    def test_sanitizes_unsafe_characters(self) -> None:
        """Slashes and spaces become underscores."""
        name = checkpoint_filename("site/my file.bin")
        assert name.startswith("site_my_file.bin-")
        assert name.endswith(".json")
        assert "/" not in name

    def test_distinct_keys_never_collide(self) -> None:
        """Keys that sanitize identically still map to distinct files."""
        assert checkpoint_filename("a/b") != checkpoint_filename("a_b")

    def test_stable(self) -> None:
        """The same key always maps to the same file."""
        assert checkpoint_filename("x/y.bin") == checkpoint_filename("x/y.bin")


class TestUploadCheckpoint:
    """Tests for UploadCheckpoint."""

    def test_add_part_replaces_same_index(self) -> None:
        """Re-recording a part keeps the latest tag only."""
        checkpoint = UploadCheckpoint(upload_id="u1")
        checkpoint.add_part(2, "old")
        checkpoint.add_part(1, "one")
        checkpoint.add_part(2, "new")

        assert checkpoint.part_indexes == {1, 2}
        assert [(p.part_index, p.part_tag) for p in checkpoint.sorted_parts()] == [
            (1, "one"),
            (2, "new"),
        ]

    def test_record_shape(self) -> None:
        """The on-disk record uses uploadId and parts[partIndex, partTag]."""
        checkpoint = UploadCheckpoint(upload_id="u1")
        checkpoint.add_part(1, '"etag1"')
        assert checkpoint.to_dict() == {
            "uploadId": "u1",
            "parts": [{"partIndex": 1, "partTag": '"etag1"'}],
        }

    def test_records_source_fingerprint(self) -> None:
        """Source size and mtime are stored next to the parts and read back."""
        checkpoint = UploadCheckpoint(upload_id="u1", source_size=12, source_mtime_ns=34)
        record = checkpoint.to_dict()
        assert (record["sourceSize"], record["sourceMtimeNs"]) == (12, 34)

        loaded = UploadCheckpoint.from_dict(record)
        assert loaded.matches_source(12, 34)
        assert not loaded.matches_source(12, 35)

    def test_record_without_fingerprint_never_matches(self) -> None:
        """A record lacking source fields cannot be resumed against any file."""
        loaded = UploadCheckpoint.from_dict({"uploadId": "u", "sourceSize": "12"})
        assert loaded.source_size is None
        assert not loaded.matches_source(12, 0)

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"parts": []},
            {"uploadId": "u", "parts": {}},
            {"uploadId": "u", "parts": [{"partIndex": 0, "partTag": "t"}]},
            {"uploadId": "u", "parts": [{"partIndex": True, "partTag": "t"}]},
            {"uploadId": "u", "parts": [{"partIndex": 1}]},
        ],
    )
    def test_rejects_malformed_records(self, data: object) -> None:
        """Malformed records raise ValueError."""
        with pytest.raises(ValueError):
            UploadCheckpoint.from_dict(data)


class TestCheckpointStore:
    """Tests for CheckpointStore."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> CheckpointStore:
        """Store in a directory that does not exist yet."""
        return CheckpointStore(tmp_path / "checkpoints")

    def test_load_missing(self, store: CheckpointStore) -> None:
        """A key without a record loads as None."""
        assert store.load("site/a.bin") is None

    def test_save_and_load(self, store: CheckpointStore) -> None:
        """A saved checkpoint loads back with its parts."""
        checkpoint = UploadCheckpoint(upload_id="u1")
        checkpoint.add_part(1, "t1")
        checkpoint.add_part(2, "t2")

        store.save("site/a.bin", checkpoint)
        loaded = store.load("site/a.bin")

        assert loaded is not None
        assert loaded.upload_id == "u1"
        assert loaded.part_indexes == {1, 2}

    def test_save_leaves_no_temp_files(self, store: CheckpointStore) -> None:
        """Atomic writes leave exactly one record file behind."""
        store.save("k", UploadCheckpoint(upload_id="u1"))
        store.save("k", UploadCheckpoint(upload_id="u2"))

        assert [p.name for p in store.directory.iterdir()] == [checkpoint_filename("k")]
        loaded = store.load("k")
        assert loaded is not None and loaded.upload_id == "u2"

    def test_corrupt_record_is_missing(self, store: CheckpointStore) -> None:
        """Unparseable JSON is reported as no checkpoint."""
        store.directory.mkdir(parents=True)
        store.path_for("k").write_text("{not json")
        assert store.load("k") is None

    def test_wrong_shape_is_missing(self, store: CheckpointStore) -> None:
        """Valid JSON with the wrong shape is reported as no checkpoint."""
        store.directory.mkdir(parents=True)
        store.path_for("k").write_text(json.dumps({"uploadId": ""}))
        assert store.load("k") is None

    def test_delete(self, store: CheckpointStore) -> None:
        """delete() reports whether a record existed."""
        store.save("k", UploadCheckpoint(upload_id="u1"))
        assert store.delete("k") is True
        assert store.delete("k") is False
        assert store.load("k") is None
