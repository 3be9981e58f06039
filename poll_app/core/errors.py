"""Errors raised when a poll command is rejected."""

from __future__ import annotations


class PollError(Exception):
    """Base class for rejected commands. ``kind`` is reported to clients."""

    kind = "poll_error"


class UnauthorizedError(PollError):
    """Caller is not the registered teacher."""

    kind = "unauthorized"


class ConflictError(PollError):
    """A second teacher tried to join, or a student name is taken."""

    kind = "conflict"


class InvalidInputError(PollError):
    """Malformed question, or a question cannot be asked right now."""

    kind = "invalid_input"


class NotFoundError(PollError):
    """Target of a teacher command does not exist."""

    kind = "not_found"
