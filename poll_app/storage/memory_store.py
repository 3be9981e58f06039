"""Volatile snapshot store kept in process memory."""

from __future__ import annotations

import copy
from threading import Lock

from poll_app.core.ports import Snapshot


class MemorySnapshotStore:
    """Keeps the latest snapshot for the lifetime of the process."""

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._lock = Lock()
        self._snapshot: Snapshot | None = copy.deepcopy(initial)

    def load(self) -> Snapshot | None:
        with self._lock:
            return copy.deepcopy(self._snapshot)

    def save(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = copy.deepcopy(snapshot)

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None
