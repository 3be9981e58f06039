"""Interfaces the poll core depends on but does not implement."""

from __future__ import annotations

from typing import Any, Callable, Protocol

PublicState = dict[str, Any]
Snapshot = dict[str, Any]

# Receives the public projection after every state change.
BroadcastPort = Callable[[PublicState], None]


class ScheduledTask(Protocol):
    def cancel(self) -> None:
        """Cancel the task. Cancelling a fired or cancelled task is harmless."""


class TimerPort(Protocol):
    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> ScheduledTask:
        """Run ``callback`` once after ``delay_seconds``."""


class SnapshotStore(Protocol):
    def load(self) -> Snapshot | None:
        """Return the last saved snapshot, or None when nothing usable is stored."""

    def save(self, snapshot: Snapshot) -> None: ...

    def clear(self) -> None: ...


def discard_state(state: PublicState) -> None:
    """Broadcast port for a poll nobody observes."""
