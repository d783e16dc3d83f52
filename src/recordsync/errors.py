"""Error kinds raised by recordsync.

``OSError`` covers unreadable or missing files; everything else derives from
``RecordSyncError``.
"""

from __future__ import annotations


class RecordSyncError(Exception):
    """Base class for recordsync errors."""


class CollectorError(RecordSyncError):
    """Building a snapshot failed (directory walk or store query)."""


class StoreError(RecordSyncError):
    """A metadata store read or write failed."""


class FatalStoreError(StoreError):
    """The metadata store is unusable; remaining items cannot be processed."""


class ConfigError(RecordSyncError, ValueError):
    """Invalid configuration."""
