"""Service holding the most recent closed questions."""

from __future__ import annotations

from collections import deque
from typing import Iterable

from poll_app.constants.poll_constants import HISTORY_LIMIT
from poll_app.core.models import HistoryEntry


class HistoryLog:
    """Most-recent-first log of closed questions, capped at ``limit`` entries."""

    def __init__(self, entries: Iterable[HistoryEntry] = (), limit: int = HISTORY_LIMIT) -> None:
        self._entries: deque[HistoryEntry] = deque(maxlen=limit)
        # ``entries`` is newest first; appending keeps that order.
        for entry in entries:
            if len(self._entries) == limit:
                break
            self._entries.append(entry)

    def record(self, entry: HistoryEntry) -> None:
        """Prepend ``entry``, evicting the oldest one on overflow."""
        self._entries.appendleft(entry)

    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    @property
    def limit(self) -> int:
        return self._entries.maxlen or HISTORY_LIMIT

    def __len__(self) -> int:
        return len(self._entries)
