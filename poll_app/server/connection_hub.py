"""WebSocket connection registry and broadcast pump."""

from __future__ import annotations

import asyncio
import logging
from threading import Lock
from typing import Any
from uuid import uuid4

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from poll_app.core.ports import PublicState

logger = logging.getLogger(__name__)

STATE_EVENT = "poll:state"


class ConnectionHub:
    """Tracks connected sockets and pushes events to them.

    ``publish_state`` is the poll's broadcast port. It may be called from any
    thread (closure timers fire on their own threads), so it only enqueues;
    a single pump task on the event loop sends queued events in order.
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._lock = Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[tuple[str, Any]] | None = None
        self._pump: asyncio.Task[None] | None = None

    # --- Lifecycle ---

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._pump = asyncio.create_task(self._run_pump(self._queue), name="poll-broadcast-pump")

    async def stop(self) -> None:
        pump, self._pump = self._pump, None
        self._loop = None
        if pump is not None:
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass

    # --- Connections ---

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        client_id = uuid4().hex
        with self._lock:
            self._connections[client_id] = websocket
        logger.info("Socket connected: %s", client_id)
        return client_id

    def disconnect(self, client_id: str) -> None:
        with self._lock:
            removed = self._connections.pop(client_id, None)
        if removed is not None:
            logger.info("Socket disconnected: %s", client_id)

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    # --- Sending ---

    async def send(self, client_id: str, event: str, data: Any = None) -> bool:
        with self._lock:
            websocket = self._connections.get(client_id)
        if websocket is None:
            return False
        return await self._send(client_id, websocket, event, data)

    async def broadcast(self, event: str, data: Any = None) -> None:
        with self._lock:
            targets = list(self._connections.items())
        for client_id, websocket in targets:
            await self._send(client_id, websocket, event, data)

    def publish_state(self, state: PublicState) -> None:
        """Queue ``state`` for every connected socket. Safe from any thread."""
        loop, queue = self._loop, self._queue
        if loop is None or queue is None or loop.is_closed():
            logger.debug("Dropping state publish: hub is not running")
            return
        try:
            loop.call_soon_threadsafe(queue.put_nowait, (STATE_EVENT, state))
        except RuntimeError:
            # Loop closed between the check and the call during shutdown.
            logger.debug("Dropping state publish: event loop closed")

    async def _run_pump(self, queue: asyncio.Queue[tuple[str, Any]]) -> None:
        while True:
            event, data = await queue.get()
            try:
                await self.broadcast(event, data)
            finally:
                queue.task_done()

    async def _send(self, client_id: str, websocket: WebSocket, event: str, data: Any) -> bool:
        if websocket.application_state != WebSocketState.CONNECTED:
            self.disconnect(client_id)
            return False
        try:
            await websocket.send_json({"event": event, "data": data})
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.warning("Dropping socket %s after failed send: %s", client_id, exc)
            self.disconnect(client_id)
            return False
        return True
