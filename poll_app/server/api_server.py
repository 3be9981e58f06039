"""FastAPI server that exposes the poll to teachers and students."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from poll_app.config import Settings
from poll_app.constants.about import APP_NAME, APP_VERSION
from poll_app.constants.network_constants import WEBSOCKET_PATH
from poll_app.core.poll_manager import PollManager
from poll_app.server.connection_hub import ConnectionHub
from poll_app.server.event_handlers import PollEventHandler

logger = logging.getLogger(__name__)


def _get_poll_manager_dependency(poll_manager: PollManager):
    def dependency() -> PollManager:
        return poll_manager

    return dependency


def create_api_app(
    poll_manager: PollManager,
    hub: ConnectionHub,
    settings: Settings | None = None,
) -> FastAPI:
    """Create a FastAPI application wired to the provided poll manager.

    ``hub.publish_state`` must be the manager's broadcast port for pushed
    updates to reach connected sockets.
    """
    settings = settings or Settings()
    events = PollEventHandler(poll_manager, hub)
    poll_manager_dep = _get_poll_manager_dependency(poll_manager)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await hub.start()
        try:
            yield
        finally:
            await hub.stop()

    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/")
    def describe_service() -> dict[str, object]:
        return {
            "message": f"{APP_NAME} backend",
            "status": "running",
            "endpoints": {
                "health": "/health",
                "state": "/state",
                "socket": WEBSOCKET_PATH,
            },
            "events": events.events,
        }

    @app.get("/health")
    def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/state")
    def get_state(manager: PollManager = Depends(poll_manager_dep)) -> dict[str, object]:
        return manager.get_public_state()

    @app.websocket(WEBSOCKET_PATH)
    async def poll_socket(websocket: WebSocket) -> None:
        client_id = await hub.connect(websocket)
        await hub.send(client_id, "connection:ready", {"clientId": client_id})
        try:
            while True:
                message = await websocket.receive_text()
                await events.handle(client_id, message)
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(client_id)
            await events.handle_disconnect(client_id)

    @app.exception_handler(404)
    async def not_found(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not Found",
                "message": f"Connect over WebSocket at {WEBSOCKET_PATH}.",
                "availableEndpoints": ["/", "/health", "/state"],
            },
        )

    return app


def run_api_server(app: FastAPI, settings: Settings) -> None:
    """Serve ``app`` with uvicorn until interrupted."""
    logger.info("Polling server running on %s:%d", settings.host, settings.port)
    logger.info("CORS allowed origin(s): %s", ", ".join(settings.cors_origins))
    config = uvicorn.Config(
        app=app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    uvicorn.Server(config).run()
