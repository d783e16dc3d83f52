"""recordsync: keep an index of file records and a directory in sync."""

from recordsync.engine import Reconciler
from recordsync.models import Drift, ItemResult, Repair, SessionResult

__version__ = "0.1.0"
__all__ = ["Drift", "ItemResult", "Reconciler", "Repair", "SessionResult"]
