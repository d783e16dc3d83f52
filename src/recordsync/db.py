"""Metadata store for recordsync.

Uses sqlite-utils for schema management. Every write runs in autocommit mode,
so an applied repair is durable before the next item is processed.
"""

from __future__ import annotations

import contextlib
import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Self

from loguru import logger
from sqlite_utils import Database
from sqlite_utils.db import NotFoundError

from recordsync.errors import FatalStoreError, StoreError

if TYPE_CHECKING:
    from collections.abc import Generator

CURRENT_SCHEMA_VERSION = 1


@contextmanager
def _store_errors(action: str) -> Generator[None, None, None]:
    """Translate sqlite failures into store errors."""
    try:
        yield
    except sqlite3.ProgrammingError as e:
        # Closed connection or misuse: nothing further can succeed
        raise FatalStoreError(f"{action} failed: {e}") from e
    except sqlite3.OperationalError as e:
        raise StoreError(f"{action} failed: {e}") from e
    except sqlite3.DatabaseError as e:
        raise FatalStoreError(f"{action} failed: {e}") from e


class MetadataStore:
    """SQLite record store resolving records against a base directory.

    Records are stored as ``dirname`` (relative to the base directory, with a
    leading ``/``), ``basename`` and ``checksum``.

    While coupled (the default) the store keeps records and files together:
    deleting a record also removes its file and saves stamp the derived
    ``modified_at`` column. Bulk reconciliation runs inside ``uncoupled()``.

    Args:
        db_path: Path to SQLite database file.
        base_directory: Directory record locations are relative to.
    """

    def __init__(self, db_path: Path | str, base_directory: Path | str) -> None:
        self._db_path = Path(db_path)
        self._base_directory = Path(base_directory).absolute()
        self._db: Database | None = None
        self._coupled = True

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def base_directory(self) -> Path:
        return self._base_directory

    @property
    def coupled(self) -> bool:
        return self._coupled

    def connect(self) -> None:
        """Establish database connection and initialize schema."""
        with _store_errors("Connect"):
            self._db = Database(self._db_path)
            self._apply_pragmas()

            tables = self._db.table_names()
            if tables and "schema_version" not in tables:
                logger.error(
                    "Incompatible database detected (missing schema_version): {}", self._db_path
                )
                self.close()
                raise FatalStoreError(f"Not a recordsync index: {self._db_path}")

            self._create_schema()
            self._enforce_schema_version()

    def _apply_pragmas(self) -> None:
        if self._db is None:
            return
        conn = self._db.conn
        if conn is None:
            return
        # Autocommit: each statement is persisted on its own
        conn.isolation_level = None
        self._db.execute("PRAGMA journal_mode = WAL")
        self._db.execute("PRAGMA synchronous = FULL")
        self._db.execute("PRAGMA busy_timeout = 5000")

    def _enforce_schema_version(self) -> None:
        current_version = self.schema_version
        if current_version > CURRENT_SCHEMA_VERSION:
            logger.error(
                "Database schema version is newer than supported! Expected v{}, found v{}.",
                CURRENT_SCHEMA_VERSION,
                current_version,
            )
            self.close()
            raise FatalStoreError(f"Unsupported schema version v{current_version}")

    def _create_schema(self) -> None:
        if self._db is None:
            return

        if "records" not in self._db.table_names():
            self._db.execute("""
                CREATE TABLE records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    dirname TEXT NOT NULL,
                    basename TEXT NOT NULL,
                    checksum TEXT NOT NULL,
                    modified_at TEXT
                )
            """)

        if "schema_version" not in self._db.table_names():
            self._db.execute("""
                CREATE TABLE schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)
            self._db.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                [CURRENT_SCHEMA_VERSION, datetime.now(UTC).isoformat()],
            )

    def close(self) -> None:
        if self._db:
            self._db.close()
            self._db = None

    def __enter__(self) -> Self:
        self.connect()
        return self

    def __exit__(self, *args: object) -> bool | None:
        self.close()
        return None

    @property
    def db(self) -> Database:
        if self._db is None:
            raise FatalStoreError("Database not connected")
        return self._db

    @property
    def schema_version(self) -> int:
        try:
            row = self.db.execute("SELECT MAX(version) FROM schema_version").fetchone()
            return row[0] if row and row[0] else 0
        except sqlite3.Error:
            return 0

    @contextmanager
    def uncoupled(self) -> Generator[Self, None, None]:
        """Suppress file coupling and derived fields for the duration of the block."""
        previous = self._coupled
        self._coupled = False
        try:
            yield self
        finally:
            self._coupled = previous

    # Locations
    def resolve(self, dirname: str, basename: str) -> Path:
        """Absolute path of a record location."""
        return self._base_directory / dirname.lstrip("/") / basename

    def relative_location(self, path: Path | str) -> tuple[str, str]:
        """Split an absolute path into the ``(dirname, basename)`` stored for it.

        Raises:
            ValueError: If ``path`` is not below the base directory.
        """
        path = Path(path).absolute()
        relative = path.parent.relative_to(self._base_directory)
        dirname = "/" if relative == Path(".") else "/" + relative.as_posix()
        return dirname, path.name

    # Records
    def find_all(self) -> list[dict]:
        """All records ordered by id."""
        with _store_errors("Query"):
            return [
                {
                    "id": row["id"],
                    "dirname": row["dirname"],
                    "basename": row["basename"],
                    "checksum": row["checksum"],
                }
                for row in self.db["records"].rows_where(order_by="id")
            ]

    def get(self, record_id: int) -> dict:
        with _store_errors("Read"):
            try:
                return self.db["records"].get(record_id)
            except NotFoundError as e:
                raise StoreError(f"Record {record_id} not found") from e

    def count(self) -> int:
        with _store_errors("Count"):
            return self.db["records"].count

    def add(self, dirname: str, basename: str, checksum: str) -> int:
        """Insert a record and return its id."""
        with _store_errors("Insert"):
            table = self.db["records"].insert(
                {
                    "dirname": dirname,
                    "basename": basename,
                    "checksum": checksum,
                    "modified_at": datetime.now(UTC).isoformat(),
                }
            )
            return table.last_pk

    def save(
        self,
        record_id: int,
        *,
        dirname: str | None = None,
        basename: str | None = None,
        checksum: str | None = None,
    ) -> None:
        """Partially update a record; only the given fields are written."""
        changes: dict[str, str] = {}
        if dirname is not None:
            changes["dirname"] = dirname
        if basename is not None:
            changes["basename"] = basename
        if checksum is not None:
            changes["checksum"] = checksum
        if not changes:
            return
        if self._coupled:
            changes["modified_at"] = datetime.now(UTC).isoformat()

        assignments = ", ".join(f"{column} = ?" for column in changes)
        with _store_errors(f"Save record {record_id}"):
            cursor = self.db.execute(
                f"UPDATE records SET {assignments} WHERE id = ?",
                [*changes.values(), record_id],
            )
        if cursor.rowcount == 0:
            raise StoreError(f"Record {record_id} not found")

    def delete(self, record_id: int) -> None:
        """Delete a record; while coupled its file is removed as well."""
        path: Path | None = None
        if self._coupled:
            row = self.get(record_id)
            path = self.resolve(row["dirname"], row["basename"])

        with _store_errors(f"Delete record {record_id}"):
            cursor = self.db.execute("DELETE FROM records WHERE id = ?", [record_id])
        if cursor.rowcount == 0:
            raise StoreError(f"Record {record_id} not found")

        if path is not None:
            with contextlib.suppress(FileNotFoundError):
                path.unlink()
                logger.debug("Removed coupled file {}", path)
