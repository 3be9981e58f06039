"""Business logic for running a live poll shared between all connections."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
import logging
from threading import Lock
import time
from typing import Callable
from uuid import uuid4

from poll_app.core.errors import InvalidInputError, PollError
from poll_app.core.models import HistoryEntry, Outcome, Question, QuestionDraft
from poll_app.core.ports import BroadcastPort, PublicState, SnapshotStore, TimerPort, discard_state
from poll_app.core.projection import public_state, session_snapshot
from poll_app.core.services.closure_timer import ThreadingTimerScheduler
from poll_app.core.services.history_log import HistoryLog
from poll_app.core.services.identity_registry import IdentityRegistry
from poll_app.core.services.question_lifecycle import QuestionLifecycle, build_question
from poll_app.core.snapshot import SessionSnapshot, SnapshotError
from poll_app.storage.memory_store import MemorySnapshotStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Session:
    """Everything one poll run owns, from reset to reset."""

    registry: IdentityRegistry = field(default_factory=IdentityRegistry)
    lifecycle: QuestionLifecycle = field(default_factory=QuestionLifecycle)
    history: HistoryLog = field(default_factory=HistoryLog)

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> "Session":
        session = cls(
            registry=IdentityRegistry.from_records(snapshot.teacher_id, snapshot.student_records()),
            history=HistoryLog(entry.to_entry() for entry in snapshot.history),
        )
        if snapshot.current_question is not None:
            session.lifecycle.restore(
                snapshot.current_question.to_question(),
                snapshot.active_submissions(),
            )
        return session


def _new_question_id() -> str:
    return uuid4().hex


class PollManager:
    """Facade applying every poll command atomically against one session.

    All commands and timer firings run under a single lock. After each state
    change the session snapshot is saved and the public projection is handed
    to the broadcast port; rejected or ignored commands do neither.
    """

    def __init__(
        self,
        broadcast: BroadcastPort = discard_state,
        scheduler: TimerPort | None = None,
        store: SnapshotStore | None = None,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = _new_question_id,
    ) -> None:
        self._lock = Lock()
        self._broadcast = broadcast
        self._scheduler = scheduler or ThreadingTimerScheduler()
        self._store = store if store is not None else MemorySnapshotStore()
        self._clock = clock
        self._id_factory = id_factory
        self._session = Session()

    # --- Persistence ---

    def restore(self) -> bool:
        """Load the stored snapshot. Returns False when starting from empty."""
        with self._lock:
            self._session.lifecycle.cancel_closure_task()
            raw = self._store.load()
            if raw is None:
                self._session = Session()
                return False
            try:
                self._session = Session.from_snapshot(SessionSnapshot.parse(raw))
            except (SnapshotError, PollError, ValueError) as exc:
                logger.warning("Discarding corrupt poll snapshot: %s", exc)
                self._session = Session()
                return False

            question = self._session.lifecycle.current_question
            if question is not None:
                remaining_ms = question.started_at_ms + question.time_limit_sec * 1000 - self._now_ms()
                if remaining_ms <= 0:
                    logger.info("Restored question %s expired while offline", question.id)
                    self._close_active_question()
                else:
                    self._schedule_closure(question, remaining_ms / 1000)
            logger.info(
                "Restored poll session with %d student(s)", self._session.registry.student_count()
            )
            return True

    # --- Identity ---

    def register_teacher(self, teacher_id: str) -> None:
        with self._lock:
            registry = self._session.registry
            if registry.teacher_id == teacher_id:
                return
            registry.register_teacher(teacher_id)
            self._commit()
            logger.info("Teacher registered: %s", teacher_id)

    def unregister_teacher(self, teacher_id: str) -> Outcome:
        with self._lock:
            if not self._session.registry.unregister_teacher(teacher_id):
                return Outcome.ignored("not the registered teacher")
            self._commit()
            logger.info("Teacher unregistered")
            return Outcome.applied()

    def is_teacher(self, caller_id: str | None) -> bool:
        with self._lock:
            return self._session.registry.is_teacher(caller_id)

    def register_student(self, student_id: str, name: object) -> str:
        """Join a student and return the display name they were given."""
        with self._lock:
            registry = self._session.registry
            record = registry.register_student(student_id, name)
            self._commit()
            logger.info(
                "Student joined: %s (id: %s). Total: %d",
                record.name,
                student_id,
                registry.student_count(),
            )
            return record.name

    def unregister_student(self, student_id: str) -> Outcome:
        with self._lock:
            record = self._session.registry.unregister_student(student_id)
            if record is None:
                return Outcome.ignored("unknown student")
            self._commit()
            logger.info("Student left: %s (id: %s)", record.name, student_id)
            return Outcome.applied()

    def remove_student(self, caller_id: str | None, target_id: str) -> None:
        with self._lock:
            record = self._session.registry.remove_student(caller_id, target_id)
            self._commit()
            logger.info("Student removed by teacher: %s (id: %s)", record.name, target_id)

    def get_student_name(self, student_id: str) -> str | None:
        with self._lock:
            record = self._session.registry.get_student(student_id)
            return record.name if record is not None else None

    def get_student_count(self) -> int:
        with self._lock:
            return self._session.registry.student_count()

    # --- Questions ---

    def can_ask_new_question(self) -> bool:
        with self._lock:
            return self._can_ask_new_question()

    def ask_question(self, caller_id: str | None, draft: QuestionDraft) -> Question:
        with self._lock:
            session = self._session
            session.registry.require_teacher(caller_id, "ask questions")
            if not self._can_ask_new_question():
                raise InvalidInputError(
                    "Cannot ask a new question yet (wait for all to answer or timeout)"
                )
            question = build_question(draft, self._id_factory(), self._now_ms())

            if session.lifecycle.is_active():
                # Everyone answered or nobody is here; keep its result before replacing it.
                self._record_history(session.lifecycle.close())
            session.lifecycle.start(question)
            session.registry.reset_answered_flags()
            self._schedule_closure(question, question.time_limit_sec)
            self._commit()
            logger.info("Question asked by teacher: %s (%s)", question.id, question.text)
            return question

    def submit_answer(self, student_id: str, option_index: object) -> Outcome:
        """Record a vote. Stale, duplicate and out-of-range votes are ignored."""
        with self._lock:
            session = self._session
            lifecycle = session.lifecycle
            if not lifecycle.is_active():
                logger.debug("Submit ignored: no active question")
                return Outcome.ignored("no active question")
            if not session.registry.has_student(student_id):
                logger.debug("Submit ignored: unknown student %s", student_id)
                return Outcome.ignored("unknown student")
            if lifecycle.has_submitted(student_id):
                logger.debug("Submit ignored: %s already answered", student_id)
                return Outcome.ignored("already answered")
            if not lifecycle.accepts_option(option_index):
                logger.debug("Submit ignored: invalid option index %r", option_index)
                return Outcome.ignored("invalid option index")

            lifecycle.record_submission(student_id, option_index)  # type: ignore[arg-type]
            session.registry.mark_answered(student_id)
            logger.info("Answer submitted: %s chose option %s", student_id, option_index)

            if self._can_ask_new_question():
                self._close_active_question()
            else:
                self._commit()
            return Outcome.applied()

    def end_current_question(self, caller_id: str | None = None) -> Outcome:
        """Close the active question. ``caller_id`` None means an internal close."""
        with self._lock:
            if caller_id is not None:
                self._session.registry.require_teacher(caller_id, "end question")
            return self._close_active_question()

    def get_current_question(self) -> Question | None:
        with self._lock:
            return self._session.lifecycle.current_question

    # --- Session ---

    def reset_all(self, caller_id: str | None) -> None:
        with self._lock:
            self._session.registry.require_teacher(caller_id, "reset")
            self._session.lifecycle.cancel_closure_task()
            self._session = Session()
            self._commit()
            logger.info("Full poll reset by teacher")

    def get_public_state(self) -> PublicState:
        with self._lock:
            return self._public_state()

    # --- Internals (lock held) ---

    def _can_ask_new_question(self) -> bool:
        session = self._session
        return session.lifecycle.can_ask_new_question(session.registry.student_ids())

    def _schedule_closure(self, question: Question, delay_seconds: float) -> None:
        task = self._scheduler.schedule(delay_seconds, partial(self._on_question_timeout, question.id))
        self._session.lifecycle.attach_closure_task(task)

    def _on_question_timeout(self, question_id: str) -> None:
        with self._lock:
            current = self._session.lifecycle.current_question
            if current is None or current.id != question_id:
                logger.debug("Stale closure timer for %s ignored", question_id)
                return
            logger.info("Question timed out: %s", question_id)
            self._close_active_question()

    def _close_active_question(self) -> Outcome:
        entry = self._session.lifecycle.close()
        if entry is None:
            return Outcome.ignored("no active question")
        self._record_history(entry)
        self._commit()
        logger.info("Question ended: %s", entry.id)
        return Outcome.applied()

    def _record_history(self, entry: HistoryEntry | None) -> None:
        if entry is not None:
            self._session.history.record(entry)

    def _public_state(self) -> PublicState:
        session = self._session
        return public_state(session.registry, session.lifecycle, session.history)

    def _commit(self) -> None:
        session = self._session
        self._store.save(session_snapshot(session.registry, session.lifecycle, session.history))
        self._broadcast(self._public_state())

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)
