"""Local filesystem collaborator: recursive listing, probes and deletion."""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger

DEFAULT_IGNORES = frozenset(
    {
        ".git",
        ".svn",
        ".hg",
        "__pycache__",
        ".DS_Store",
        "Thumbs.db",
    }
)


class LocalFileSystem:
    """Filesystem access used by snapshots, classification and repairs.

    Args:
        ignores: File or directory names skipped during the walk.
        exclude: Absolute paths never listed (e.g. the index database).
    """

    def __init__(
        self,
        ignores: frozenset[str] | set[str] | None = None,
        exclude: set[Path] | None = None,
    ) -> None:
        self._ignores = frozenset(DEFAULT_IGNORES if ignores is None else ignores)
        self._exclude = {Path(p) for p in exclude} if exclude else set()

    def list_files(self, root: Path | str) -> list[Path]:
        """List regular files below ``root``, depth first, entries sorted by name.

        Symlinks are skipped.

        Raises:
            OSError: If ``root`` or one of its subdirectories cannot be read.
        """
        root = Path(root)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        files: list[Path] = []
        self._walk(root, files)
        return files

    def _walk(self, directory: Path, files: list[Path]) -> None:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)

        for entry in entries:
            if entry.name in self._ignores:
                continue
            path = Path(entry.path)
            if self._exclude and path.absolute() in self._exclude:
                continue
            if entry.is_file(follow_symlinks=False):
                files.append(path)
            elif entry.is_dir(follow_symlinks=False):
                self._walk(path, files)

    def exists(self, path: Path) -> bool:
        return os.path.exists(path)

    def is_readable(self, path: Path) -> bool:
        """True for a regular file the current user may read."""
        try:
            return path.is_file() and os.access(path, os.R_OK)
        except OSError:
            return False

    def delete(self, path: Path) -> None:
        """Remove a file. Raises OSError on failure."""
        path.unlink()
        logger.debug("Unlinked {}", path)
