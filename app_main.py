"""Application entry point for the LivePoll server."""

from __future__ import annotations

from fastapi import FastAPI

from poll_app.config import Settings, get_settings
from poll_app.core.poll_manager import PollManager
from poll_app.server.api_server import create_api_app, run_api_server
from poll_app.server.connection_hub import ConnectionHub
from poll_app.storage.factory import create_snapshot_store
from poll_app.utils.logging_config import configure_logging


def build_app(settings: Settings) -> FastAPI:
    """Wire the poll manager, its snapshot store and the broadcast hub."""
    hub = ConnectionHub()
    poll_manager = PollManager(
        broadcast=hub.publish_state,
        store=create_snapshot_store(settings),
    )
    poll_manager.restore()
    return create_api_app(poll_manager, hub, settings)


def main() -> None:
    """Initialize logging and serve the poll until interrupted."""
    settings = get_settings()
    logger = configure_logging(settings.log_level.upper())
    logger.info("Starting LivePoll server…")
    run_api_server(build_app(settings), settings)


if __name__ == "__main__":
    main()
