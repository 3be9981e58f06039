from __future__ import annotations

from typing import Callable

import pytest

from poll_app.core.models import QuestionDraft
from poll_app.core.poll_manager import PollManager
from poll_app.storage.memory_store import MemorySnapshotStore


class FakeTask:
    def __init__(self, delay_seconds: float, callback: Callable[[], None]) -> None:
        self.delay_seconds = delay_seconds
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records scheduled callbacks; tests fire them by hand."""

    def __init__(self) -> None:
        self.tasks: list[FakeTask] = []

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> FakeTask:
        task = FakeTask(delay_seconds, callback)
        self.tasks.append(task)
        return task

    def pending(self) -> list[FakeTask]:
        return [task for task in self.tasks if not task.cancelled and not task.fired]

    def fire(self, task: FakeTask) -> None:
        """Run the callback even if cancelled, like a timer that already started."""
        task.fired = True
        task.callback()


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingBroadcast:
    def __init__(self) -> None:
        self.states: list[dict] = []

    def __call__(self, state: dict) -> None:
        self.states.append(state)

    @property
    def last(self) -> dict:
        return self.states[-1]


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def broadcast() -> RecordingBroadcast:
    return RecordingBroadcast()


@pytest.fixture
def store() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def manager(broadcast, scheduler, store, clock) -> PollManager:
    return PollManager(broadcast=broadcast, scheduler=scheduler, store=store, clock=clock)


@pytest.fixture
def teacher(manager) -> str:
    manager.register_teacher("teacher-1")
    return "teacher-1"


def make_draft(
    text: str = "Pick one",
    options: list[str] | None = None,
    time_limit_sec: int | None = 60,
) -> QuestionDraft:
    return QuestionDraft(text=text, options=options or ["a", "b"], time_limit_sec=time_limit_sec)
