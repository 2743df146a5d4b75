"""Child process tracker: terminates dev-server subprocesses on exit.

Backends that spawn long-running tools (app-scripts) register the PID here.
An ``atexit`` handler sends SIGTERM to anything still registered, so a
crash in the serve flow does not leave a watcher running in the background.
"""
from __future__ import annotations

import atexit
import logging
import os
import signal

logger = logging.getLogger(__name__)

_tracked_pids: set[int] = set()


def track(pid: int) -> None:
    """Register a long-running subprocess PID."""
    _tracked_pids.add(pid)


def untrack(pid: int) -> None:
    """Unregister a subprocess PID (stopped normally)."""
    _tracked_pids.discard(pid)


def tracked() -> frozenset[int]:
    return frozenset(_tracked_pids)


def kill_all() -> None:
    """Send SIGTERM to all tracked PIDs (called by atexit)."""
    for pid in list(_tracked_pids):
        try:
            os.kill(pid, signal.SIGTERM)
            logger.debug("Sent SIGTERM to tracked PID %d", pid)
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug("Failed to signal PID %d: %s", pid, e)
    _tracked_pids.clear()


# SIGKILL cannot be caught; everything else ends up here.
atexit.register(kill_all)
