"""Lookups between the two sides of a snapshot.

All lookups use first-match-in-order semantics: when several entries share a
checksum or path, the earliest one in the snapshot wins.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from recordsync.models import FileEntry, RecordEntry, Snapshot


def find_by_checksum(checksum: str | None, files: Iterable[FileEntry]) -> Path | None:
    """Path of the first file whose checksum equals ``checksum``."""
    if checksum is None:
        return None
    for entry in files:
        if entry.checksum == checksum:
            return entry.path
    return None


def find_by_path(path: Path | None, entries: Iterable[FileEntry | RecordEntry]) -> Path | None:
    """Path of the first entry located at ``path``."""
    if path is None:
        return None
    for entry in entries:
        if entry.path == path:
            return entry.path
    return None


class SnapshotIndex:
    """Indexed lookups over one snapshot, equivalent to the linear scans."""

    def __init__(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self._file_by_checksum: dict[str, Path] = {}
        self._file_paths: set[Path] = set()
        self._record_paths: set[Path] = set()

        for entry in snapshot.files:
            self._file_paths.add(entry.path)
            if entry.checksum is not None:
                # setdefault keeps the earliest file for a checksum
                self._file_by_checksum.setdefault(entry.checksum, entry.path)
        for record in snapshot.records:
            self._record_paths.add(record.path)

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def file_by_checksum(self, checksum: str | None) -> Path | None:
        if checksum is None:
            return None
        return self._file_by_checksum.get(checksum)

    def has_file(self, path: Path) -> bool:
        return path in self._file_paths

    def has_record(self, path: Path) -> bool:
        return path in self._record_paths


def find_alternative(record: RecordEntry, index: SnapshotIndex) -> Path | None:
    """File that could replace the record's current location.

    The first file carrying the record's stored checksum, unless some record
    of the snapshot (the record itself included) already points at it.
    """
    candidate = index.file_by_checksum(record.checksum)
    if candidate is None or index.has_record(candidate):
        return None
    return candidate
