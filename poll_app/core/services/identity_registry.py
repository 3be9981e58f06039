"""Service for tracking the teacher and the joined students."""

from __future__ import annotations

from poll_app.constants.poll_constants import DEFAULT_STUDENT_NAME, MAX_STUDENT_NAME_LENGTH
from poll_app.core.errors import ConflictError, NotFoundError, UnauthorizedError
from poll_app.core.models import StudentRecord


def sanitize_student_name(name: object) -> str:
    """Trim and truncate a requested display name."""
    cleaned = str(name if name is not None else "").strip()[:MAX_STUDENT_NAME_LENGTH].strip()
    return cleaned or DEFAULT_STUDENT_NAME


class IdentityRegistry:
    """Owns the teacher slot and the student records with their unique names.

    Records and the name set are only ever changed together, so
    ``names() == {record.name for record in records}`` always holds.
    """

    def __init__(self) -> None:
        self._teacher_id: str | None = None
        self._students: dict[str, StudentRecord] = {}
        self._names: set[str] = set()

    # --- Teacher ---

    @property
    def teacher_id(self) -> str | None:
        return self._teacher_id

    def register_teacher(self, teacher_id: str) -> None:
        if self._teacher_id is not None and self._teacher_id != teacher_id:
            raise ConflictError("Teacher already registered")
        self._teacher_id = teacher_id

    def unregister_teacher(self, teacher_id: str) -> bool:
        """Free the teacher slot if ``teacher_id`` holds it. Never fails."""
        if self._teacher_id is not None and self._teacher_id == teacher_id:
            self._teacher_id = None
            return True
        return False

    def is_teacher(self, caller_id: str | None) -> bool:
        return caller_id is not None and self._teacher_id is not None and caller_id == self._teacher_id

    def require_teacher(self, caller_id: str | None, action: str) -> None:
        if not self.is_teacher(caller_id):
            raise UnauthorizedError(f"Unauthorized: Only teacher can {action}")

    # --- Students ---

    def register_student(self, student_id: str, name: object) -> StudentRecord:
        """Add a student, or rename one re-joining under the same id."""
        display_name = sanitize_student_name(name)
        existing = self._students.get(student_id)
        if display_name in self._names and (existing is None or existing.name != display_name):
            raise ConflictError("Name already taken by another student")

        if existing is not None:
            self._names.discard(existing.name)
            existing.name = display_name
            self._names.add(display_name)
            return existing

        record = StudentRecord(name=display_name)
        self._students[student_id] = record
        self._names.add(display_name)
        return record

    def unregister_student(self, student_id: str) -> StudentRecord | None:
        record = self._students.pop(student_id, None)
        if record is not None:
            self._names.discard(record.name)
        return record

    def remove_student(self, caller_id: str | None, target_id: str) -> StudentRecord:
        self.require_teacher(caller_id, "remove students")
        if target_id not in self._students:
            raise NotFoundError("Student not found")
        record = self._students.pop(target_id)
        self._names.discard(record.name)
        return record

    def has_student(self, student_id: str) -> bool:
        return student_id in self._students

    def get_student(self, student_id: str) -> StudentRecord | None:
        return self._students.get(student_id)

    def student_ids(self) -> set[str]:
        return set(self._students)

    def student_count(self) -> int:
        return len(self._students)

    def names(self) -> set[str]:
        return set(self._names)

    def records(self) -> dict[str, StudentRecord]:
        return dict(self._students)

    def mark_answered(self, student_id: str) -> None:
        record = self._students.get(student_id)
        if record is not None:
            record.has_answered = True

    def reset_answered_flags(self) -> None:
        for record in self._students.values():
            record.has_answered = False

    @classmethod
    def from_records(
        cls,
        teacher_id: str | None,
        records: dict[str, StudentRecord],
    ) -> "IdentityRegistry":
        """Rebuild a registry from stored records, keeping names and records in step."""
        registry = cls()
        registry._teacher_id = teacher_id
        for student_id, record in records.items():
            if record.name in registry._names:
                raise ConflictError(f"Duplicate student name in stored records: {record.name}")
            registry._students[student_id] = record
            registry._names.add(record.name)
        return registry
