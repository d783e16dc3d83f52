"""Builds point-in-time snapshots of the directory and the store."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from recordsync.errors import CollectorError, StoreError
from recordsync.models import FileEntry, RecordEntry, Snapshot

if TYPE_CHECKING:
    from recordsync.db import MetadataStore
    from recordsync.fs import LocalFileSystem
    from recordsync.hashing import ChecksumProvider


def build_snapshot(
    filesystem: LocalFileSystem,
    checksums: ChecksumProvider,
    store: MetadataStore,
    directory: Path | str,
) -> Snapshot:
    """Capture the files below ``directory`` and all records of ``store``.

    Walk order and query order are preserved. A file that cannot be hashed is
    kept with a ``None`` checksum.

    Raises:
        CollectorError: If the walk or the store query fails.
    """
    directory = Path(directory)

    try:
        paths = filesystem.list_files(directory)
    except OSError as e:
        raise CollectorError(f"Cannot list files in {directory}: {e}") from e

    files: list[FileEntry] = []
    for path in paths:
        try:
            checksum: str | None = checksums.checksum(path)
        except OSError as e:
            logger.warning("Cannot checksum {}: {}", path, e)
            checksum = None
        files.append(FileEntry(path=path, checksum=checksum))

    try:
        rows = store.find_all()
    except StoreError as e:
        raise CollectorError(f"Cannot query records: {e}") from e

    records = tuple(
        RecordEntry(
            id=row["id"],
            path=store.resolve(row["dirname"], row["basename"]),
            checksum=row["checksum"],
        )
        for row in rows
    )

    logger.debug("Snapshot: {} files, {} records", len(files), len(records))
    return Snapshot(files=tuple(files), records=records)
