"""Drift classification for records and files.

Record checks run in a fixed order and stop at the first that applies:
orphaned, not readable, checksum mismatch. A dangling symlink counts as a
missing file. A file is only checked against record paths, never against
record checksums.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from recordsync.models import Classification, Drift

if TYPE_CHECKING:
    from recordsync.fs import LocalFileSystem
    from recordsync.hashing import ChecksumProvider
    from recordsync.matcher import SnapshotIndex
    from recordsync.models import FileEntry, RecordEntry


def classify_record(
    record: RecordEntry,
    filesystem: LocalFileSystem,
    checksums: ChecksumProvider,
) -> Classification:
    """Classify a record against the live state of its file."""
    path = record.path

    if not filesystem.exists(path):
        return Classification(Drift.ORPHANED_RECORD)

    if not filesystem.is_readable(path):
        return Classification(Drift.NOT_READABLE)

    try:
        live = checksums.checksum(path)
    except OSError as e:
        # Became unreadable after the probe
        logger.debug("Checksum of {} failed: {}", path, e)
        return Classification(Drift.NOT_READABLE)

    if live != record.checksum:
        return Classification(Drift.CHECKSUM_MISMATCH, live_checksum=live)
    return Classification(Drift.IN_SYNC, live_checksum=live)


def classify_file(entry: FileEntry, index: SnapshotIndex) -> Drift:
    """Classify a file by whether any record of the snapshot points at its path."""
    if not index.has_record(entry.path):
        return Drift.ORPHANED_FILE
    return Drift.IN_SYNC
