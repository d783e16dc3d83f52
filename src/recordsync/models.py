"""Value objects shared by the reconciliation core."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class Drift(Enum):
    """Drift class of a record or file."""

    IN_SYNC = "in_sync"
    NOT_READABLE = "not_readable"
    ORPHANED_RECORD = "orphaned_record"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    ORPHANED_FILE = "orphaned_file"


class Repair(Enum):
    """Repair actions the policy engine can apply."""

    RELINK = "relink"
    CORRECT_CHECKSUM = "correct_checksum"
    DELETE_RECORD = "delete_record"
    DELETE_FILE = "delete_file"


@dataclass(frozen=True, slots=True)
class FileEntry:
    """A file found on disk when the snapshot was taken.

    ``checksum`` is None when the file could not be read during the walk.
    """

    path: Path
    checksum: str | None


@dataclass(frozen=True, slots=True)
class RecordEntry:
    """A persisted record, resolved to an absolute path."""

    id: int
    path: Path
    checksum: str


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Point-in-time view of both sides, in discovery and query order."""

    files: tuple[FileEntry, ...] = ()
    records: tuple[RecordEntry, ...] = ()


@dataclass(frozen=True, slots=True)
class Classification:
    """Drift of one record plus the live checksum when it was computed."""

    drift: Drift
    live_checksum: str | None = None


@dataclass(frozen=True, slots=True)
class ItemResult:
    """Outcome of processing a single record or file."""

    path: Path
    drift: Drift
    record_id: int | None = None
    repair: Repair | None = None
    alternative: Path | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "path": str(self.path),
            "record_id": self.record_id,
            "drift": self.drift.value,
            "repair": self.repair.value if self.repair else None,
            "alternative": str(self.alternative) if self.alternative else None,
            "error": self.error,
        }


@dataclass(slots=True)
class PhaseResult:
    """Items processed by one phase.

    ``aborted`` holds the reason when the phase stopped early on an error.
    """

    name: str
    items: list[ItemResult] = field(default_factory=list)
    aborted: str | None = None
    cancelled: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "aborted": self.aborted,
            "cancelled": self.cancelled,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(slots=True)
class SessionResult:
    """Aggregated outcome of a reconciliation run."""

    phases: list[PhaseResult] = field(default_factory=list)

    @property
    def items(self) -> list[ItemResult]:
        return [item for phase in self.phases for item in phase.items]

    @property
    def drift_count(self) -> int:
        return sum(1 for item in self.items if item.drift is not Drift.IN_SYNC)

    @property
    def repair_count(self) -> int:
        return sum(1 for item in self.items if item.repair is not None)

    @property
    def error_count(self) -> int:
        return sum(1 for item in self.items if item.error is not None)

    @property
    def aborted(self) -> bool:
        return any(phase.aborted for phase in self.phases)

    def by_drift(self) -> Counter[Drift]:
        return Counter(item.drift for item in self.items)

    def to_dict(self) -> dict[str, object]:
        counts = self.by_drift()
        return {
            "summary": {
                "items": len(self.items),
                "drift": self.drift_count,
                "repaired": self.repair_count,
                "errors": self.error_count,
                **{drift.value: counts.get(drift, 0) for drift in Drift},
            },
            "phases": [phase.to_dict() for phase in self.phases],
        }
