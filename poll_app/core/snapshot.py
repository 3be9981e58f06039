"""Snapshot schema used to persist a poll session between restarts."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from poll_app.constants.poll_constants import HISTORY_LIMIT
from poll_app.core.models import HistoryEntry, Question, StudentRecord


class SnapshotError(ValueError):
    """Stored snapshot is unreadable or inconsistent."""


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class StudentSnapshot(_CamelModel):
    name: str = Field(min_length=1)
    has_answered: bool = False


class QuestionSnapshot(_CamelModel):
    id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    options: list[str] = Field(min_length=2)
    time_limit_sec: int
    started_at_ms: int

    @classmethod
    def from_question(cls, question: Question) -> "QuestionSnapshot":
        return cls(
            id=question.id,
            text=question.text,
            options=list(question.options),
            time_limit_sec=question.time_limit_sec,
            started_at_ms=question.started_at_ms,
        )

    def to_question(self) -> Question:
        return Question(
            id=self.id,
            text=self.text,
            options=tuple(self.options),
            time_limit_sec=self.time_limit_sec,
            started_at_ms=self.started_at_ms,
        )


class HistorySnapshot(_CamelModel):
    id: str
    text: str
    options: list[str]
    results: list[int]
    started_at_ms: int
    time_limit_sec: int

    @model_validator(mode="after")
    def _results_match_options(self) -> "HistorySnapshot":
        if len(self.results) != len(self.options):
            raise ValueError("history results must align with options")
        return self

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "HistorySnapshot":
        return cls(
            id=entry.id,
            text=entry.text,
            options=list(entry.options),
            results=list(entry.results),
            started_at_ms=entry.started_at_ms,
            time_limit_sec=entry.time_limit_sec,
        )

    def to_entry(self) -> HistoryEntry:
        return HistoryEntry(
            id=self.id,
            text=self.text,
            options=tuple(self.options),
            results=tuple(self.results),
            started_at_ms=self.started_at_ms,
            time_limit_sec=self.time_limit_sec,
        )


class SessionSnapshot(_CamelModel):
    """Serializable mirror of a session; ``student_names`` is a sorted list."""

    teacher_id: str | None = None
    students: dict[str, StudentSnapshot] = Field(default_factory=dict)
    student_names: list[str] = Field(default_factory=list)
    current_question: QuestionSnapshot | None = None
    # question id -> option index -> count
    answers: dict[str, dict[int, int]] = Field(default_factory=dict)
    # question id -> student id -> option index
    submissions: dict[str, dict[str, int]] = Field(default_factory=dict)
    history: list[HistorySnapshot] = Field(default_factory=list, max_length=HISTORY_LIMIT)

    @model_validator(mode="after")
    def _check_invariants(self) -> "SessionSnapshot":
        names = [student.name for student in self.students.values()]
        if len(set(names)) != len(names) or set(names) != set(self.student_names):
            raise ValueError("student names do not match student records")
        if self.current_question is not None:
            qid = self.current_question.id
            votes = self.submissions.get(qid, {})
            if sum(self.answers.get(qid, {}).values()) != len(votes):
                raise ValueError("tally does not match submissions")
        return self

    def dump(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def student_records(self) -> dict[str, StudentRecord]:
        return {
            student_id: StudentRecord(name=student.name, has_answered=student.has_answered)
            for student_id, student in self.students.items()
        }

    def active_submissions(self) -> dict[str, int]:
        if self.current_question is None:
            return {}
        return dict(self.submissions.get(self.current_question.id, {}))

    @classmethod
    def parse(cls, raw: object) -> "SessionSnapshot":
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise SnapshotError(str(exc)) from exc
