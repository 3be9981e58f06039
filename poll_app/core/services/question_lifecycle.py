"""Service for the active question, its tally and its closure task."""

from __future__ import annotations

from typing import Iterable

from poll_app.constants.poll_constants import (
    DEFAULT_TIME_LIMIT_SECONDS,
    MAX_QUESTION_TEXT_LENGTH,
    MAX_TIME_LIMIT_SECONDS,
    MIN_OPTION_COUNT,
    MIN_TIME_LIMIT_SECONDS,
)
from poll_app.core.errors import InvalidInputError
from poll_app.core.models import HistoryEntry, Question, QuestionDraft
from poll_app.core.ports import ScheduledTask


def normalize_time_limit(time_limit_sec: object) -> int:
    """Default missing or non-positive limits, then clamp into the allowed range."""
    if isinstance(time_limit_sec, bool) or not isinstance(time_limit_sec, (int, float)):
        seconds = DEFAULT_TIME_LIMIT_SECONDS
    elif time_limit_sec != time_limit_sec or time_limit_sec <= 0:  # NaN or non-positive
        seconds = DEFAULT_TIME_LIMIT_SECONDS
    else:
        seconds = int(min(time_limit_sec, MAX_TIME_LIMIT_SECONDS))
    return min(max(seconds, MIN_TIME_LIMIT_SECONDS), MAX_TIME_LIMIT_SECONDS)


def build_question(draft: QuestionDraft, question_id: str, started_at_ms: int) -> Question:
    """Validate and normalize a teacher's draft into an immutable question."""
    text = str(draft.text if draft.text is not None else "").strip()[:MAX_QUESTION_TEXT_LENGTH]
    if not text:
        raise InvalidInputError("Question text is required")

    options = tuple(
        cleaned for cleaned in (str(option).strip() for option in (draft.options or [])) if cleaned
    )
    if len(options) < MIN_OPTION_COUNT:
        raise InvalidInputError(f"Need at least {MIN_OPTION_COUNT} non-empty options")

    return Question(
        id=question_id,
        text=text,
        options=options,
        time_limit_sec=normalize_time_limit(draft.time_limit_sec),
        started_at_ms=started_at_ms,
    )


def is_valid_option_index(option_index: object, option_count: int) -> bool:
    if isinstance(option_index, bool) or not isinstance(option_index, int):
        return False
    return 0 <= option_index < option_count


class QuestionLifecycle:
    """Idle or Active. Closing is the only way back to Idle and is idempotent."""

    def __init__(self) -> None:
        self._question: Question | None = None
        # question id -> option index -> count
        self._tallies: dict[str, dict[int, int]] = {}
        # question id -> student id -> option index
        self._submissions: dict[str, dict[str, int]] = {}
        self._closure_task: ScheduledTask | None = None

    @property
    def current_question(self) -> Question | None:
        return self._question

    def is_active(self) -> bool:
        return self._question is not None

    def can_ask_new_question(self, student_ids: Iterable[str]) -> bool:
        """True when idle or when every registered student already voted."""
        if self._question is None:
            return True
        submitted = self._submissions.get(self._question.id, {})
        return all(student_id in submitted for student_id in student_ids)

    def start(self, question: Question) -> None:
        """Make ``question`` active with empty tally and submissions."""
        if self._question is not None:
            self._retire(self._question.id)
        self._question = question
        self._tallies[question.id] = {}
        self._submissions[question.id] = {}

    def attach_closure_task(self, task: ScheduledTask) -> None:
        self.cancel_closure_task()
        self._closure_task = task

    def cancel_closure_task(self) -> None:
        task, self._closure_task = self._closure_task, None
        if task is not None:
            task.cancel()

    def has_submitted(self, student_id: str) -> bool:
        if self._question is None:
            return False
        return student_id in self._submissions[self._question.id]

    def accepts_option(self, option_index: object) -> bool:
        if self._question is None:
            return False
        return is_valid_option_index(option_index, len(self._question.options))

    def record_submission(self, student_id: str, option_index: int) -> None:
        if self._question is None:
            raise RuntimeError("No active question to record a submission for")
        qid = self._question.id
        self._submissions[qid][student_id] = option_index
        tally = self._tallies[qid]
        tally[option_index] = tally.get(option_index, 0) + 1

    def totals(self) -> list[int]:
        """Per-option counts aligned to the active question's options."""
        if self._question is None:
            return []
        tally = self._tallies.get(self._question.id, {})
        return [tally.get(index, 0) for index in range(len(self._question.options))]

    def close(self) -> HistoryEntry | None:
        """Cancel the closure task and finalize the active question, if any."""
        self.cancel_closure_task()
        question = self._question
        if question is None:
            return None
        entry = HistoryEntry(
            id=question.id,
            text=question.text,
            options=question.options,
            results=tuple(self.totals()),
            started_at_ms=question.started_at_ms,
            time_limit_sec=question.time_limit_sec,
        )
        self._retire(question.id)
        self._question = None
        return entry

    def submissions(self) -> dict[str, int]:
        if self._question is None:
            return {}
        return dict(self._submissions[self._question.id])

    def restore(self, question: Question, submissions: dict[str, int]) -> None:
        """Reinstate an active question and its votes from a snapshot."""
        self.start(question)
        for student_id, option_index in submissions.items():
            if is_valid_option_index(option_index, len(question.options)):
                self.record_submission(student_id, option_index)

    def _retire(self, question_id: str) -> None:
        self._tallies.pop(question_id, None)
        self._submissions.pop(question_id, None)
