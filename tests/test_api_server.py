from __future__ import annotations

from contextlib import ExitStack
import time

from fastapi.testclient import TestClient
import pytest

from conftest import FakeScheduler
from poll_app.config import Settings
from poll_app.core.poll_manager import PollManager
from poll_app.server.api_server import create_api_app
from poll_app.server.connection_hub import ConnectionHub
from poll_app.storage.memory_store import MemorySnapshotStore


@pytest.fixture
def poll_manager_and_hub():
    hub = ConnectionHub()
    manager = PollManager(
        broadcast=hub.publish_state,
        scheduler=FakeScheduler(),
        store=MemorySnapshotStore(),
    )
    return manager, hub


@pytest.fixture
def test_client(poll_manager_and_hub):
    manager, hub = poll_manager_and_hub
    app = create_api_app(manager, hub, Settings(cors_origin="http://localhost:3000"))
    with TestClient(app) as client:
        yield client


class SocketClient:
    """HTTP client plus sockets that are all closed before the app shuts down."""

    def __init__(self, client: TestClient, stack: ExitStack) -> None:
        self._client = client
        self._stack = stack

    def get(self, url: str):
        return self._client.get(url)

    def open_socket(self):
        return self._stack.enter_context(self._client.websocket_connect("/ws"))


@pytest.fixture
def client(test_client):
    with ExitStack() as stack:
        yield SocketClient(test_client, stack)


def receive_until(websocket, event, predicate=lambda data: True, limit=50):
    """Read messages until ``event`` arrives with data matching ``predicate``."""
    for _ in range(limit):
        message = websocket.receive_json()
        if message["event"] == event and predicate(message["data"]):
            return message["data"]
    raise AssertionError(f"{event} not received")


def connect(client):
    websocket = client.open_socket()
    ready = receive_until(websocket, "connection:ready")
    return websocket, ready["clientId"]


def test_health_and_root(client):
    assert client.get("/health").json() == {"ok": True}
    root = client.get("/").json()
    assert root["status"] == "running"
    assert "teacher:ask" in root["events"]


def test_unknown_route_points_to_socket(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"


def test_teacher_asks_and_two_students_answer(client):
    teacher, _ = connect(client)
    teacher.send_json({"event": "teacher:join"})
    receive_until(teacher, "poll:state")

    alice, _ = connect(client)
    bob, _ = connect(client)
    alice.send_json({"event": "student:join", "data": "  Alice "})
    assert receive_until(alice, "success:join")["name"] == "Alice"
    bob.send_json({"event": "student:join", "data": "Bob"})
    receive_until(bob, "success:join")

    teacher.send_json(
        {"event": "teacher:ask", "data": {"text": "Pick one", "options": ["a", "b"], "timeLimitSec": 60}}
    )
    receive_until(teacher, "success:ask")
    receive_until(alice, "poll:state", lambda state: state["hasQuestion"])

    alice.send_json({"event": "student:answer", "data": 0})
    assert receive_until(alice, "success:answer")["accepted"] is True
    bob.send_json({"event": "student:answer", "data": 1})
    receive_until(bob, "success:answer")

    final = receive_until(teacher, "poll:state", lambda state: not state["hasQuestion"] and state["history"])
    assert final["history"][0]["results"] == [1, 1]
    assert client.get("/state").json()["history"][0]["results"] == [1, 1]


def test_duplicate_answer_is_acknowledged_but_ignored(client):
    teacher, _ = connect(client)
    teacher.send_json({"event": "teacher:join"})
    receive_until(teacher, "poll:state")
    students = []
    for name in ("A", "B"):
        websocket, _ = connect(client)
        websocket.send_json({"event": "student:join", "data": name})
        receive_until(websocket, "success:join")
        students.append(websocket)
    teacher.send_json({"event": "teacher:ask", "data": {"text": "Q", "options": ["a", "b"]}})
    receive_until(teacher, "success:ask")

    students[0].send_json({"event": "student:answer", "data": 1})
    receive_until(students[0], "success:answer")
    students[0].send_json({"event": "student:answer", "data": 0})
    reply = receive_until(students[0], "success:answer")

    assert reply == {"message": "Answer ignored", "accepted": False, "reason": "already answered"}
    assert client.get("/state").json()["results"] == {"totals": [0, 1], "totalVotes": 1}


def test_second_teacher_gets_conflict(client):
    first, _ = connect(client)
    first.send_json({"event": "teacher:join"})
    receive_until(first, "poll:state")

    second, _ = connect(client)
    second.send_json({"event": "teacher:join"})
    error = receive_until(second, "error:message")
    assert error["kind"] == "conflict"

    second.send_json({"event": "teacher:ask", "data": {"text": "Q", "options": ["a", "b"]}})
    assert receive_until(second, "error:message")["kind"] == "unauthorized"
    first.send_json({"event": "teacher:ask", "data": {"text": "Q", "options": ["a", "b"]}})
    receive_until(first, "success:ask")


def test_invalid_question_reports_invalid_input(client):
    teacher, _ = connect(client)
    teacher.send_json({"event": "teacher:join"})
    receive_until(teacher, "poll:state")

    teacher.send_json({"event": "teacher:ask", "data": {"text": "Q", "options": ["only-one"]}})

    assert receive_until(teacher, "error:message")["kind"] == "invalid_input"
    assert client.get("/state").json()["hasQuestion"] is False


def test_ask_accepts_numeric_options_and_fractional_time_limit(client):
    teacher, _ = connect(client)
    teacher.send_json({"event": "teacher:join"})
    receive_until(teacher, "poll:state")

    teacher.send_json(
        {"event": "teacher:ask", "data": {"text": "Q", "options": ["a", 2], "timeLimitSec": 30.5}}
    )
    receive_until(teacher, "success:ask")

    question = client.get("/state").json()["currentQuestion"]
    assert question["options"] == ["a", "2"]
    assert question["timeLimitSec"] == 30


def test_malformed_messages_are_bad_requests(client):
    websocket, _ = connect(client)

    websocket.send_text("not json")
    assert receive_until(websocket, "error:message")["kind"] == "bad_request"
    websocket.send_json({"event": "teacher:dance"})
    assert receive_until(websocket, "error:message")["kind"] == "bad_request"
    websocket.send_json({"event": "teacher:ask", "data": {"options": "nope"}})
    assert receive_until(websocket, "error:message")["kind"] == "bad_request"

    websocket.send_json({"event": "poll:get-state"})
    assert receive_until(websocket, "poll:state")["studentCount"] == 0


def test_teacher_removes_student_and_student_is_told(client):
    teacher, _ = connect(client)
    teacher.send_json({"event": "teacher:join"})
    receive_until(teacher, "poll:state")
    student, student_id = connect(client)
    student.send_json({"event": "student:join", "data": "Alice"})
    receive_until(student, "success:join")

    teacher.send_json({"event": "teacher:remove", "data": student_id})

    assert receive_until(teacher, "success:remove")["studentId"] == student_id
    notice = receive_until(student, "error:message")
    assert notice["kind"] == "removed"
    assert client.get("/state").json()["studentCount"] == 0

    teacher.send_json({"event": "teacher:remove", "data": student_id})
    assert receive_until(teacher, "error:message")["kind"] == "not_found"


def test_chat_uses_registered_names(client):
    teacher, _ = connect(client)
    teacher.send_json({"event": "teacher:join"})
    receive_until(teacher, "poll:state")
    student, _ = connect(client)
    student.send_json({"event": "student:join", "data": "Alice"})
    receive_until(student, "success:join")

    student.send_json({"event": "chat:message", "data": {"message": "  hello  "}})
    from_student = receive_until(teacher, "chat:new")
    teacher.send_json({"event": "chat:message", "data": {"message": "hi"}})
    from_teacher = receive_until(student, "chat:new", lambda data: data["from"] == "Teacher")

    assert from_student["from"] == "Alice"
    assert from_student["message"] == "hello"
    assert from_teacher["message"] == "hi"


def test_reset_by_teacher(client):
    teacher, _ = connect(client)
    teacher.send_json({"event": "teacher:join"})
    receive_until(teacher, "poll:state")
    student, _ = connect(client)
    student.send_json({"event": "student:join", "data": "Alice"})
    receive_until(student, "success:join")

    student.send_json({"event": "teacher:reset"})
    assert receive_until(student, "error:message")["kind"] == "unauthorized"
    teacher.send_json({"event": "teacher:reset"})
    receive_until(teacher, "success:reset")

    assert client.get("/state").json()["studentCount"] == 0


def test_disconnect_unregisters_student(client):
    student, _ = connect(client)
    student.send_json({"event": "student:join", "data": "Alice"})
    receive_until(student, "success:join")
    assert client.get("/state").json()["studentCount"] == 1

    student.close()

    for _ in range(100):
        if client.get("/state").json()["studentCount"] == 0:
            break
        time.sleep(0.01)
    assert client.get("/state").json()["studentCount"] == 0
