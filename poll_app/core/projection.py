"""Public, read-only views of a poll session."""

from __future__ import annotations

from poll_app.core.models import HistoryEntry, Question
from poll_app.core.ports import PublicState, Snapshot
from poll_app.core.services.history_log import HistoryLog
from poll_app.core.services.identity_registry import IdentityRegistry
from poll_app.core.services.question_lifecycle import QuestionLifecycle
from poll_app.core.snapshot import HistorySnapshot, QuestionSnapshot, SessionSnapshot, StudentSnapshot


def _question_view(question: Question) -> dict[str, object]:
    return {
        "id": question.id,
        "text": question.text,
        "options": list(question.options),
        "timeLimitSec": question.time_limit_sec,
        "startedAtMs": question.started_at_ms,
    }


def _history_view(entry: HistoryEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "text": entry.text,
        "options": list(entry.options),
        "results": list(entry.results),
        "startedAtMs": entry.started_at_ms,
        "timeLimitSec": entry.time_limit_sec,
    }


def public_state(
    registry: IdentityRegistry,
    lifecycle: QuestionLifecycle,
    history: HistoryLog,
) -> PublicState:
    """Projection pushed to every observer.

    Identity tokens and per-student choices never appear here; only the
    student count and aggregate totals do.
    """
    question = lifecycle.current_question
    results = None
    if question is not None:
        totals = lifecycle.totals()
        results = {"totals": totals, "totalVotes": sum(totals)}
    return {
        "hasQuestion": question is not None,
        "currentQuestion": _question_view(question) if question is not None else None,
        "results": results,
        "studentCount": registry.student_count(),
        "history": [_history_view(entry) for entry in history.entries()],
    }


def session_snapshot(
    registry: IdentityRegistry,
    lifecycle: QuestionLifecycle,
    history: HistoryLog,
) -> Snapshot:
    """Serializable mirror of the whole session for the snapshot store."""
    question = lifecycle.current_question
    answers: dict[str, dict[int, int]] = {}
    submissions: dict[str, dict[str, int]] = {}
    if question is not None:
        answers[question.id] = {
            index: count for index, count in enumerate(lifecycle.totals()) if count
        }
        submissions[question.id] = lifecycle.submissions()

    snapshot = SessionSnapshot(
        teacher_id=registry.teacher_id,
        students={
            student_id: StudentSnapshot(name=record.name, has_answered=record.has_answered)
            for student_id, record in registry.records().items()
        },
        student_names=sorted(registry.names()),
        current_question=QuestionSnapshot.from_question(question) if question is not None else None,
        answers=answers,
        submissions=submissions,
        history=[HistorySnapshot.from_entry(entry) for entry in history.entries()],
    )
    return snapshot.dump()
