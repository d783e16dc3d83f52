"""Content checksums for files on disk.

xxh128 is the default. md5 is kept for indexes written by older tooling,
which stored md5 hex digests.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import xxhash

CHUNK_SIZE = 256 * 1024  # 256KB chunks for all storage types
ALGORITHMS = ("xxh128", "md5")


class ChecksumProvider:
    """Deterministic, content-based checksum of a file.

    Args:
        algorithm: One of ``ALGORITHMS``.
    """

    def __init__(self, algorithm: str = "xxh128") -> None:
        if algorithm not in ALGORITHMS:
            raise ValueError(f"Unsupported checksum algorithm: {algorithm}")
        self._algorithm = algorithm

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def _new_hasher(self):
        if self._algorithm == "md5":
            return hashlib.md5(usedforsecurity=False)
        return xxhash.xxh128()

    def checksum(self, file_path: Path | str) -> str:
        """Return the lowercase hex digest of the file's content.

        Raises:
            OSError: If the file cannot be read.
        """
        file_path = Path(file_path)
        hasher = self._new_hasher()

        try:
            with file_path.open("rb") as f:
                while chunk := f.read(CHUNK_SIZE):
                    hasher.update(chunk)
        except OSError as e:
            raise OSError(f"Failed to read file for checksum: {file_path}") from e

        return hasher.hexdigest()

    __call__ = checksum
