"""Tests for snapshot lookups."""

from __future__ import annotations

from pathlib import Path

from recordsync.matcher import SnapshotIndex, find_alternative, find_by_checksum, find_by_path
from recordsync.models import FileEntry, RecordEntry, Snapshot

FILES = (
    FileEntry(Path("/base/a/x.jpg"), "abc"),
    FileEntry(Path("/base/b/z.jpg"), "def"),
    FileEntry(Path("/base/c/dup1.jpg"), "dup"),
    FileEntry(Path("/base/c/dup2.jpg"), "dup"),
    FileEntry(Path("/base/d/broken.jpg"), None),
)


class TestFindByChecksum:
    def test_empty_sequence(self):
        assert find_by_checksum("abc", []) is None

    def test_found(self):
        assert find_by_checksum("def", FILES) == Path("/base/b/z.jpg")

    def test_not_found(self):
        assert find_by_checksum("nope", FILES) is None

    def test_first_match_wins(self):
        """Files sharing a checksum resolve to the earliest one, on every call."""
        for _ in range(3):
            assert find_by_checksum("dup", FILES) == Path("/base/c/dup1.jpg")
        assert find_by_checksum("dup", tuple(reversed(FILES))) == Path("/base/c/dup2.jpg")

    def test_none_checksum_never_matches(self):
        assert find_by_checksum(None, FILES) is None

    def test_result_is_present_in_sequence(self):
        paths = {entry.path for entry in FILES}
        for checksum in ("abc", "def", "dup"):
            assert find_by_checksum(checksum, FILES) in paths


class TestFindByPath:
    def test_empty_sequence(self):
        assert find_by_path(Path("/base/a/x.jpg"), []) is None

    def test_files(self):
        assert find_by_path(Path("/base/b/z.jpg"), FILES) == Path("/base/b/z.jpg")

    def test_records(self):
        records = [RecordEntry(1, Path("/base/a/x.jpg"), "abc")]
        assert find_by_path(Path("/base/a/x.jpg"), records) == Path("/base/a/x.jpg")
        assert find_by_path(Path("/base/a/y.jpg"), records) is None

    def test_none_path(self):
        assert find_by_path(None, FILES) is None


class TestSnapshotIndex:
    def test_matches_linear_scans(self):
        index = SnapshotIndex(Snapshot(files=FILES))
        for checksum in ("abc", "def", "dup", "nope", None):
            assert index.file_by_checksum(checksum) == find_by_checksum(checksum, FILES)

    def test_membership(self):
        records = (RecordEntry(1, Path("/base/a/x.jpg"), "abc"),)
        index = SnapshotIndex(Snapshot(files=FILES, records=records))
        assert index.has_file(Path("/base/d/broken.jpg"))
        assert not index.has_file(Path("/base/nope.jpg"))
        assert index.has_record(Path("/base/a/x.jpg"))
        assert not index.has_record(Path("/base/b/z.jpg"))

    def test_empty_snapshot(self):
        index = SnapshotIndex(Snapshot())
        assert index.file_by_checksum("abc") is None
        assert not index.has_record(Path("/base/a/x.jpg"))


class TestFindAlternative:
    def test_unclaimed_file_with_same_checksum(self):
        record = RecordEntry(2, Path("/base/a/y.jpg"), "def")
        index = SnapshotIndex(Snapshot(files=FILES, records=(record,)))
        assert find_alternative(record, index) == Path("/base/b/z.jpg")

    def test_claimed_file_is_excluded(self):
        """An alternative already referenced by another record is never offered."""
        record = RecordEntry(2, Path("/base/a/y.jpg"), "def")
        owner = RecordEntry(7, Path("/base/b/z.jpg"), "def")
        index = SnapshotIndex(Snapshot(files=FILES, records=(record, owner)))
        assert find_alternative(record, index) is None

    def test_own_file_is_excluded(self):
        record = RecordEntry(1, Path("/base/a/x.jpg"), "abc")
        index = SnapshotIndex(Snapshot(files=FILES, records=(record,)))
        assert find_alternative(record, index) is None

    def test_no_file_with_checksum(self):
        record = RecordEntry(3, Path("/base/a/x.jpg"), "old")
        index = SnapshotIndex(Snapshot(files=FILES, records=(record,)))
        assert find_alternative(record, index) is None

    def test_only_first_duplicate_considered(self):
        """When the first file with the checksum is claimed, later ones are not tried."""
        record = RecordEntry(4, Path("/base/gone.jpg"), "dup")
        owner = RecordEntry(5, Path("/base/c/dup1.jpg"), "dup")
        index = SnapshotIndex(Snapshot(files=FILES, records=(record, owner)))
        assert find_alternative(record, index) is None
