"""Dispatches client WebSocket events onto the poll manager."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.concurrency import run_in_threadpool

from poll_app.constants.poll_constants import (
    MAX_CHAT_MESSAGE_LENGTH,
    TEACHER_CHAT_NAME,
    UNKNOWN_CHAT_NAME,
)
from poll_app.core.errors import PollError
from poll_app.core.models import QuestionDraft
from poll_app.core.poll_manager import PollManager
from poll_app.server.connection_hub import STATE_EVENT, ConnectionHub

logger = logging.getLogger(__name__)

ERROR_EVENT = "error:message"


class ClientEvent(BaseModel):
    """Envelope of every message a client sends."""

    event: str = Field(min_length=1)
    data: Any = None


class AskPayload(BaseModel):
    """Payload schema for ``teacher:ask``.

    Values are passed through loosely; the poll manager sanitizes text,
    options and the time limit.
    """

    model_config = ConfigDict(populate_by_name=True)

    text: Any = ""
    options: list[Any] = Field(default_factory=list)
    time_limit_sec: Any = Field(default=None, alias="timeLimitSec")


class ChatPayload(BaseModel):
    """Payload schema for ``chat:message``."""

    message: str = ""


class BadRequestError(Exception):
    """Client message could not be understood."""


Handler = Callable[[str, Any], Awaitable[None]]


class PollEventHandler:
    """Maps event names to poll commands and replies to the sender.

    Poll manager calls lock and persist synchronously, so they run in the
    threadpool and never hold up the event loop.
    """

    def __init__(self, manager: PollManager, hub: ConnectionHub) -> None:
        self._manager = manager
        self._hub = hub
        self._handlers: dict[str, Handler] = {
            "teacher:join": self._teacher_join,
            "teacher:leave": self._teacher_leave,
            "student:join": self._student_join,
            "student:leave": self._student_leave,
            "teacher:ask": self._teacher_ask,
            "student:answer": self._student_answer,
            "teacher:end": self._teacher_end,
            "teacher:remove": self._teacher_remove,
            "teacher:reset": self._teacher_reset,
            "poll:get-state": self._get_state,
            "chat:message": self._chat_message,
        }

    @property
    def events(self) -> list[str]:
        return sorted(self._handlers)

    async def handle(self, client_id: str, raw_message: str) -> None:
        """Run one client message. Failures are reported to that client only."""
        try:
            envelope = self._parse(raw_message)
            handler = self._handlers.get(envelope.event)
            if handler is None:
                raise BadRequestError(f"Unknown event: {envelope.event}")
            await handler(client_id, envelope.data)
        except PollError as exc:
            logger.info("Rejected command from %s: %s", client_id, exc)
            await self._send_error(client_id, exc.kind, str(exc))
        except BadRequestError as exc:
            await self._send_error(client_id, "bad_request", str(exc))
        except Exception:
            logger.exception("Failed to handle message from %s", client_id)
            await self._send_error(client_id, "server_error", "Server error occurred")

    async def handle_disconnect(self, client_id: str) -> None:
        await run_in_threadpool(self._release_client, client_id)

    # --- Events ---

    async def _teacher_join(self, client_id: str, data: Any) -> None:
        await run_in_threadpool(self._manager.register_teacher, client_id)
        await self._send_state(client_id)
        logger.info("Teacher joined successfully")

    async def _teacher_leave(self, client_id: str, data: Any) -> None:
        await run_in_threadpool(self._manager.unregister_teacher, client_id)

    async def _student_join(self, client_id: str, data: Any) -> None:
        name = await run_in_threadpool(self._manager.register_student, client_id, data)
        await self._hub.send(client_id, "success:join", {"name": name})
        await self._send_state(client_id)

    async def _student_leave(self, client_id: str, data: Any) -> None:
        await run_in_threadpool(self._manager.unregister_student, client_id)

    async def _teacher_ask(self, client_id: str, data: Any) -> None:
        payload = _validate(AskPayload, data)
        draft = QuestionDraft(
            text=payload.text,
            options=payload.options,
            time_limit_sec=payload.time_limit_sec,
        )
        question = await run_in_threadpool(self._manager.ask_question, client_id, draft)
        await self._hub.send(
            client_id,
            "success:ask",
            {"message": "Question asked successfully", "questionId": question.id},
        )

    async def _student_answer(self, client_id: str, data: Any) -> None:
        outcome = await run_in_threadpool(self._manager.submit_answer, client_id, data)
        message = "Answer submitted" if outcome.is_applied else "Answer ignored"
        await self._hub.send(
            client_id,
            "success:answer",
            {"message": message, "accepted": outcome.is_applied, "reason": outcome.reason},
        )

    async def _teacher_end(self, client_id: str, data: Any) -> None:
        await run_in_threadpool(self._manager.end_current_question, client_id)
        await self._hub.send(client_id, "success:end", {"message": "Question ended"})

    async def _teacher_remove(self, client_id: str, data: Any) -> None:
        if not isinstance(data, str) or not data:
            raise BadRequestError("teacher:remove expects the target student id")
        await run_in_threadpool(self._manager.remove_student, client_id, data)
        await self._hub.send(
            client_id,
            "success:remove",
            {"studentId": data, "message": "Student removed"},
        )
        await self._hub.send(
            data,
            ERROR_EVENT,
            {"kind": "removed", "message": "You were removed from the poll"},
        )

    async def _teacher_reset(self, client_id: str, data: Any) -> None:
        await run_in_threadpool(self._manager.reset_all, client_id)
        await self._hub.send(client_id, "success:reset", {"message": "Poll reset"})

    async def _get_state(self, client_id: str, data: Any) -> None:
        await self._send_state(client_id)

    async def _chat_message(self, client_id: str, data: Any) -> None:
        payload = _validate(ChatPayload, data)
        message = payload.message.strip()[:MAX_CHAT_MESSAGE_LENGTH]
        if not message:
            return
        sender = await run_in_threadpool(self._chat_sender, client_id)
        await self._hub.broadcast(
            "chat:new",
            {"from": sender, "message": message, "timestamp": int(time.time() * 1000)},
        )
        logger.info("Chat: %s: %s", sender, message)

    # --- Helpers ---

    def _release_client(self, client_id: str) -> None:
        self._manager.unregister_teacher(client_id)
        self._manager.unregister_student(client_id)

    def _chat_sender(self, client_id: str) -> str:
        if self._manager.is_teacher(client_id):
            return TEACHER_CHAT_NAME
        return self._manager.get_student_name(client_id) or UNKNOWN_CHAT_NAME

    async def _send_state(self, client_id: str) -> None:
        state = await run_in_threadpool(self._manager.get_public_state)
        await self._hub.send(client_id, STATE_EVENT, state)

    @staticmethod
    def _parse(raw_message: str) -> ClientEvent:
        try:
            return ClientEvent.model_validate(json.loads(raw_message))
        except json.JSONDecodeError as exc:
            raise BadRequestError("Message is not valid JSON") from exc
        except ValidationError as exc:
            raise BadRequestError("Message must be an object with an 'event' name") from exc

    async def _send_error(self, client_id: str, kind: str, message: str) -> None:
        await self._hub.send(client_id, ERROR_EVENT, {"kind": kind, "message": message})


def _validate(model: type[BaseModel], data: Any) -> Any:
    try:
        return model.model_validate(data if data is not None else {})
    except ValidationError as exc:
        raise BadRequestError(f"Invalid payload: {exc.error_count()} error(s)") from exc
