"""Domain models for the live poll."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(slots=True)
class StudentRecord:
    """A joined student and whether they voted on the active question."""

    name: str
    has_answered: bool = False


@dataclass(slots=True, frozen=True)
class QuestionDraft:
    """Unvalidated question as submitted by the teacher."""

    text: Any
    options: list[Any]
    time_limit_sec: Any = None


@dataclass(slots=True, frozen=True)
class Question:
    """Single-choice question. Immutable once asked."""

    id: str
    text: str
    options: tuple[str, ...]
    time_limit_sec: int
    started_at_ms: int


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    """Final tally of a closed question."""

    id: str
    text: str
    options: tuple[str, ...]
    results: tuple[int, ...]
    started_at_ms: int
    time_limit_sec: int


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    IGNORED = "ignored"


@dataclass(slots=True, frozen=True)
class Outcome:
    """Result of a command that may be silently skipped.

    Rejections are raised as ``PollError`` subclasses instead; an ignored
    outcome is an expected miss (stale or duplicate client message) and leaves
    the session untouched.
    """

    status: OutcomeStatus
    reason: str | None = None

    @classmethod
    def applied(cls) -> "Outcome":
        return cls(OutcomeStatus.APPLIED)

    @classmethod
    def ignored(cls, reason: str) -> "Outcome":
        return cls(OutcomeStatus.IGNORED, reason)

    @property
    def is_applied(self) -> bool:
        return self.status is OutcomeStatus.APPLIED
