"""Tests for drift classification."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from conftest import UnreadableFileSystem, write_file

from recordsync.classifier import classify_file, classify_record
from recordsync.fs import LocalFileSystem
from recordsync.hashing import ChecksumProvider
from recordsync.matcher import SnapshotIndex
from recordsync.models import Drift, FileEntry, RecordEntry, Snapshot


class TestClassifyRecord:
    def test_in_sync(self, base_dir: Path, checksums: ChecksumProvider):
        path = write_file(base_dir / "a" / "x.jpg", b"pixels")
        record = RecordEntry(1, path, checksums.checksum(path))

        result = classify_record(record, LocalFileSystem(), checksums)

        assert result.drift is Drift.IN_SYNC
        assert result.live_checksum == record.checksum

    def test_orphaned_record(self, base_dir: Path, checksums: ChecksumProvider):
        record = RecordEntry(2, base_dir / "a" / "y.jpg", "abc")

        result = classify_record(record, LocalFileSystem(), checksums)

        assert result.drift is Drift.ORPHANED_RECORD
        assert result.live_checksum is None

    def test_dangling_symlink_is_orphaned(self, base_dir: Path, checksums: ChecksumProvider):
        link = base_dir / "y.jpg"
        link.symlink_to(base_dir / "gone.jpg")
        record = RecordEntry(3, link, "abc")

        result = classify_record(record, LocalFileSystem(), checksums)

        assert result.drift is Drift.ORPHANED_RECORD

    def test_checksum_mismatch(self, base_dir: Path, checksums: ChecksumProvider):
        path = write_file(base_dir / "a" / "x.jpg", b"new pixels")
        record = RecordEntry(3, path, "old")

        result = classify_record(record, LocalFileSystem(), checksums)

        assert result.drift is Drift.CHECKSUM_MISMATCH
        assert result.live_checksum == checksums.checksum(path)

    def test_not_readable_takes_priority_over_mismatch(
        self, base_dir: Path, checksums: ChecksumProvider
    ):
        path = write_file(base_dir / "a" / "x.jpg", b"pixels")
        record = RecordEntry(4, path, "stale")

        result = classify_record(record, UnreadableFileSystem({path}), checksums)

        assert result.drift is Drift.NOT_READABLE

    def test_directory_at_record_path_is_not_readable(
        self, base_dir: Path, checksums: ChecksumProvider
    ):
        (base_dir / "a" / "x.jpg").mkdir(parents=True)
        record = RecordEntry(5, base_dir / "a" / "x.jpg", "abc")

        result = classify_record(record, LocalFileSystem(), checksums)

        assert result.drift is Drift.NOT_READABLE

    def test_read_failure_after_probe_is_not_readable(
        self, base_dir: Path, checksums: ChecksumProvider
    ):
        path = write_file(base_dir / "a" / "x.jpg", b"pixels")
        record = RecordEntry(6, path, "abc")

        with patch.object(ChecksumProvider, "checksum", side_effect=OSError("EIO")):
            result = classify_record(record, LocalFileSystem(), checksums)

        assert result.drift is Drift.NOT_READABLE


class TestClassifyFile:
    def test_referenced_file_in_sync(self):
        entry = FileEntry(Path("/base/a/x.jpg"), "abc")
        index = SnapshotIndex(
            Snapshot(files=(entry,), records=(RecordEntry(1, Path("/base/a/x.jpg"), "zzz"),))
        )
        assert classify_file(entry, index) is Drift.IN_SYNC

    def test_unreferenced_file_orphaned(self):
        entry = FileEntry(Path("/base/c/w.jpg"), "abc")
        index = SnapshotIndex(Snapshot(files=(entry,)))
        assert classify_file(entry, index) is Drift.ORPHANED_FILE

    def test_matching_checksum_elsewhere_is_still_orphaned(self):
        """Only paths count: a record with the same content elsewhere does not claim the file."""
        entry = FileEntry(Path("/base/c/w.jpg"), "abc")
        record = RecordEntry(1, Path("/base/a/x.jpg"), "abc")
        index = SnapshotIndex(Snapshot(files=(entry,), records=(record,)))
        assert classify_file(entry, index) is Drift.ORPHANED_FILE
