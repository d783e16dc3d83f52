"""Reconciliation driver.

Runs two independent phases, each over its own fresh snapshot:

- ``records``: every record is checked against the file it points at.
- ``files``: every file is checked for a record pointing at it.

Items are processed one at a time; a repair is persisted before the next item
is looked at. Repairs made in a phase are not visible to later items of the
same phase, only to the next phase's snapshot.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from recordsync.classifier import classify_file, classify_record
from recordsync.decisions import FixedAnswer
from recordsync.errors import CollectorError, FatalStoreError, StoreError
from recordsync.fs import LocalFileSystem
from recordsync.hashing import ChecksumProvider
from recordsync.matcher import SnapshotIndex, find_alternative
from recordsync.models import Drift, ItemResult, PhaseResult, Repair, SessionResult
from recordsync.policy import RepairEngine
from recordsync.snapshot import build_snapshot

if TYPE_CHECKING:
    from collections.abc import Callable

    from recordsync.db import MetadataStore
    from recordsync.decisions import DecisionSource
    from recordsync.models import FileEntry, RecordEntry, Snapshot

# Errors of a single repair; the run goes on with the next item
ITEM_ERRORS = (StoreError, OSError, ValueError)


class Reconciler:
    """Reconciles a metadata store with a directory.

    Args:
        store: Connected metadata store.
        directory: Directory to search for files.
        filesystem: Filesystem collaborator. Defaults to ``LocalFileSystem``
            excluding the store's database files.
        checksums: Checksum provider. Defaults to xxh128.
        decisions: Source of repair decisions. Defaults to report-only.
        default_answer: Default shown when a human is asked.
        manual_only: Repairs never applied without a human saying yes.
        on_item: Called with every ``ItemResult`` as soon as it is known.
    """

    def __init__(
        self,
        store: MetadataStore,
        directory: Path | str,
        filesystem: LocalFileSystem | None = None,
        checksums: ChecksumProvider | None = None,
        decisions: DecisionSource | None = None,
        default_answer: bool = False,
        manual_only: frozenset[Repair] = frozenset(),
        on_item: Callable[[ItemResult], None] | None = None,
    ) -> None:
        self._store = store
        self._directory = Path(directory).absolute()
        self._filesystem = filesystem or LocalFileSystem(exclude=database_files(store.db_path))
        self._checksums = checksums or ChecksumProvider()
        self._decisions = decisions or FixedAnswer(False)
        self._engine = RepairEngine(
            store,
            self._filesystem,
            self._decisions,
            default_answer=default_answer,
            manual_only=manual_only,
        )
        self._on_item = on_item
        self._cancelled = threading.Event()

    @property
    def engine(self) -> RepairEngine:
        return self._engine

    def cancel(self) -> None:
        """Stop after the item currently being processed."""
        self._cancelled.set()

    def run(self) -> SessionResult:
        """Run both phases with store coupling suppressed."""
        self._cancelled.clear()
        session = SessionResult()
        with self._store.uncoupled():
            session.phases.append(self.check_records())
            session.phases.append(self.check_files())
        return session

    def snapshot(self) -> Snapshot:
        return build_snapshot(self._filesystem, self._checksums, self._store, self._directory)

    def check_records(self) -> PhaseResult:
        """Check whether files are in sync with records."""
        phase = PhaseResult(name="records")
        logger.info("Checking if files are in sync with records")

        try:
            index = SnapshotIndex(self.snapshot())
        except CollectorError as e:
            logger.error("Cannot check records: {}", e)
            phase.aborted = str(e)
            return phase

        for record in index.snapshot.records:
            if self._cancelled.is_set():
                phase.cancelled = True
                break
            try:
                item = self._process_record(record, index)
            except FatalStoreError as e:
                logger.error("Aborting record check: {}", e)
                phase.aborted = str(e)
                break
            self._emit(phase, item)

        logger.info("Done.")
        return phase

    def check_files(self) -> PhaseResult:
        """Check whether records are in sync with files."""
        phase = PhaseResult(name="files")
        logger.info("Checking if records are in sync with files")

        try:
            index = SnapshotIndex(self.snapshot())
        except CollectorError as e:
            logger.error("Cannot check files: {}", e)
            phase.aborted = str(e)
            return phase

        for entry in index.snapshot.files:
            if self._cancelled.is_set():
                phase.cancelled = True
                break
            try:
                item = self._process_file(entry, index)
            except FatalStoreError as e:
                logger.error("Aborting file check: {}", e)
                phase.aborted = str(e)
                break
            self._emit(phase, item)

        logger.info("Done.")
        return phase

    def _process_record(self, record: RecordEntry, index: SnapshotIndex) -> ItemResult:
        classification = classify_record(record, self._filesystem, self._checksums)
        drift = classification.drift

        if drift is Drift.IN_SYNC:
            logger.debug("{} -> record {} in sync", record.path, record.id)
            return ItemResult(path=record.path, drift=drift, record_id=record.id)

        if drift is Drift.NOT_READABLE:
            logger.warning("File `{}` exists but is not readable.", record.path)
            return ItemResult(path=record.path, drift=drift, record_id=record.id)

        if drift is Drift.ORPHANED_RECORD:
            logger.warning(
                "Record {} is orphaned. It's pointing to non-existent file `{}`.",
                record.id,
                record.path,
            )
        else:
            logger.warning(
                "The checksums for file `{}` and its record {} mismatch.", record.path, record.id
            )

        alternative = find_alternative(record, index)
        try:
            repair = self._engine.resolve_record(record, classification, alternative)
        except FatalStoreError:
            raise
        except ITEM_ERRORS as e:
            logger.error("Repair of record {} failed: {}", record.id, e)
            return ItemResult(
                path=record.path,
                drift=drift,
                record_id=record.id,
                alternative=alternative,
                error=str(e),
            )

        return ItemResult(
            path=record.path,
            drift=drift,
            record_id=record.id,
            repair=repair,
            alternative=alternative,
        )

    def _process_file(self, entry: FileEntry, index: SnapshotIndex) -> ItemResult:
        drift = classify_file(entry, index)

        if drift is Drift.IN_SYNC:
            logger.debug("{} <- record found", entry.path)
            return ItemResult(path=entry.path, drift=drift)

        logger.warning("File `{}` is orphaned.", entry.path)
        try:
            repair = self._engine.resolve_file(entry)
        except FatalStoreError:
            raise
        except ITEM_ERRORS as e:
            logger.error("Repair of file {} failed: {}", entry.path, e)
            return ItemResult(path=entry.path, drift=drift, error=str(e))

        return ItemResult(path=entry.path, drift=drift, repair=repair)

    def _emit(self, phase: PhaseResult, item: ItemResult) -> None:
        phase.items.append(item)
        if self._on_item is not None:
            self._on_item(item)


def database_files(db_path: Path) -> set[Path]:
    """The database file and its WAL companions, as absolute paths."""
    db_path = Path(db_path).absolute()
    return {db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm"), Path(f"{db_path}-journal")}
