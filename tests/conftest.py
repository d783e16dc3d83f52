"""Shared fixtures for recordsync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from recordsync.db import MetadataStore
from recordsync.fs import LocalFileSystem
from recordsync.hashing import ChecksumProvider


class ScriptedDecision:
    """Answers from a queue, recording every question asked."""

    def __init__(self, *answers: bool, interactive: bool = True) -> None:
        self.answers = list(answers)
        self.questions: list[str] = []
        self.interactive = interactive

    def ask(self, question: str, default: bool) -> bool:
        self.questions.append(question)
        return self.answers.pop(0) if self.answers else default


class UnreadableFileSystem(LocalFileSystem):
    """Reports selected paths as unreadable, regardless of permissions."""

    def __init__(self, unreadable: set[Path], **kwargs) -> None:
        super().__init__(**kwargs)
        self.unreadable = unreadable

    def is_readable(self, path: Path) -> bool:
        if path in self.unreadable:
            return False
        return super().is_readable(path)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path.resolve()


@pytest.fixture
def base_dir(temp_dir: Path) -> Path:
    """Media directory records are relative to."""
    base = temp_dir / "base"
    base.mkdir()
    return base


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    return temp_dir / "index.db"


@pytest.fixture
def store(db_path: Path, base_dir: Path):
    """A connected MetadataStore."""
    with MetadataStore(db_path, base_dir) as s:
        yield s


@pytest.fixture
def checksums() -> ChecksumProvider:
    return ChecksumProvider()


def write_file(path: Path, content: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def index_file(store: MetadataStore, path: Path, checksums: ChecksumProvider) -> int:
    """Add a record for an existing file."""
    dirname, basename = store.relative_location(path)
    return store.add(dirname, basename, checksums.checksum(path))
