"""Repair policy: which repairs a drift allows and how they are applied.

Candidates are offered in order; the first accepted one is applied and the
rest are not offered. Deciding is delegated to a ``DecisionSource``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from recordsync.models import Drift, Repair
from recordsync.signals import critical_section

if TYPE_CHECKING:
    from pathlib import Path

    from recordsync.db import MetadataStore
    from recordsync.decisions import DecisionSource
    from recordsync.fs import LocalFileSystem
    from recordsync.models import Classification, FileEntry, RecordEntry

CANDIDATES: dict[Drift, tuple[Repair, ...]] = {
    Drift.ORPHANED_RECORD: (Repair.RELINK, Repair.DELETE_RECORD),
    Drift.CHECKSUM_MISMATCH: (Repair.RELINK, Repair.CORRECT_CHECKSUM, Repair.DELETE_RECORD),
    Drift.ORPHANED_FILE: (Repair.DELETE_FILE,),
}


class RepairEngine:
    """Offers and applies repairs for classified drift.

    Args:
        store: Metadata store records are saved to and deleted from.
        filesystem: Filesystem orphaned files are deleted from.
        decisions: Source of yes/no answers.
        default_answer: Default shown when a human is asked.
        manual_only: Repairs only applied after a human said yes.
    """

    def __init__(
        self,
        store: MetadataStore,
        filesystem: LocalFileSystem,
        decisions: DecisionSource,
        default_answer: bool = False,
        manual_only: frozenset[Repair] = frozenset(),
    ) -> None:
        self._store = store
        self._filesystem = filesystem
        self._decisions = decisions
        self._default_answer = default_answer
        self._manual_only = manual_only

    def candidates(self, drift: Drift, alternative: Path | None = None) -> tuple[Repair, ...]:
        """Repairs offered for ``drift``, in order."""
        repairs = CANDIDATES.get(drift, ())
        if not self._relinkable(alternative):
            repairs = tuple(r for r in repairs if r is not Repair.RELINK)
        return repairs

    def _relinkable(self, alternative: Path | None) -> bool:
        if alternative is None:
            return False
        try:
            self._store.relative_location(alternative)
        except ValueError:
            logger.debug("Alternative {} is outside {}", alternative, self._store.base_directory)
            return False
        return True

    def _accept(self, repair: Repair, question: str) -> bool:
        if repair in self._manual_only and not self._decisions.interactive:
            logger.debug("Skipping {}: requires confirmation", repair.value)
            return False
        return self._decisions.ask(question, self._default_answer)

    def resolve_record(
        self,
        record: RecordEntry,
        classification: Classification,
        alternative: Path | None = None,
    ) -> Repair | None:
        """Offer repairs for a drifted record and apply the first accepted.

        Returns the applied repair, or None when every candidate was declined.
        Errors of the store propagate.
        """
        for repair in self.candidates(classification.drift, alternative):
            if repair is Repair.RELINK:
                logger.info("This file has an identical checksum: {}", alternative)
                if self._accept(repair, "Select this file and update record?"):
                    self.relink(record, alternative)
                    return repair
            elif repair is Repair.CORRECT_CHECKSUM:
                if self._accept(repair, "Correct the checksum of the record?"):
                    self.correct_checksum(record, classification.live_checksum)
                    return repair
            elif repair is Repair.DELETE_RECORD:
                if self._accept(repair, "Delete record?"):
                    self.delete_record(record)
                    return repair
        return None

    def resolve_file(self, entry: FileEntry) -> Repair | None:
        """Offer to delete an orphaned file."""
        for repair in self.candidates(Drift.ORPHANED_FILE):
            if self._accept(repair, "Delete file?"):
                self.delete_file(entry)
                return repair
        return None

    # Actions
    def relink(self, record: RecordEntry, alternative: Path) -> None:
        """Point the record at ``alternative``; the checksum is left as is."""
        dirname, basename = self._store.relative_location(alternative)
        with critical_section():
            self._store.save(record.id, dirname=dirname, basename=basename)
        logger.info("Corrected dirname and basename of record {}", record.id)

    def correct_checksum(self, record: RecordEntry, live_checksum: str | None) -> None:
        """Store the file's live checksum; the location is left as is."""
        if live_checksum is None:
            raise ValueError(f"No live checksum for record {record.id}")
        with critical_section():
            self._store.save(record.id, checksum=live_checksum)
        logger.info("Corrected checksum of record {}", record.id)

    def delete_record(self, record: RecordEntry) -> None:
        with critical_section():
            self._store.delete(record.id)
        logger.info("Record {} deleted", record.id)

    def delete_file(self, entry: FileEntry) -> None:
        with critical_section():
            self._filesystem.delete(entry.path)
        logger.info("File {} deleted", entry.path)
