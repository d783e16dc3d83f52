"""Deferral of SIGINT/SIGTERM while a repair is being written."""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Generator

_deferred_signal: tuple[int, object] | None = None


def _deferred_signal_handler(signum: int, frame: object) -> None:
    """Store signal for later delivery after critical section completes."""
    global _deferred_signal
    _deferred_signal = (signum, frame)


@contextmanager
def critical_section() -> Generator[None, None, None]:
    """Defer SIGINT/SIGTERM until the enclosed write completes.

    An interrupted run therefore stops between items, never halfway through
    one. Handlers can only be installed from the main thread; elsewhere this
    is a no-op.
    """
    global _deferred_signal

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    _deferred_signal = None
    old_sigint = signal.signal(signal.SIGINT, _deferred_signal_handler)
    old_sigterm = signal.signal(signal.SIGTERM, _deferred_signal_handler)

    try:
        yield
    finally:
        signal.signal(signal.SIGINT, old_sigint)
        signal.signal(signal.SIGTERM, old_sigterm)

        if _deferred_signal is not None:
            signum, frame = _deferred_signal
            _deferred_signal = None
            logger.warning("Deferred signal {} received, re-raising after critical section", signum)
            if signum == signal.SIGINT and old_sigint not in (signal.SIG_IGN, signal.SIG_DFL):
                old_sigint(signum, frame)  # type: ignore[operator]
            elif signum == signal.SIGTERM and old_sigterm not in (signal.SIG_IGN, signal.SIG_DFL):
                old_sigterm(signum, frame)  # type: ignore[operator]
            else:
                signal.raise_signal(signum)
