"""Selects the snapshot store for a deployment."""

from __future__ import annotations

import logging

from poll_app.config import Settings
from poll_app.core.ports import SnapshotStore
from poll_app.storage.memory_store import MemorySnapshotStore
from poll_app.storage.redis_store import RedisSnapshotStore

logger = logging.getLogger(__name__)


def create_snapshot_store(settings: Settings) -> SnapshotStore:
    if settings.store_backend == "redis":
        logger.info("Using Redis snapshot store at key %s", settings.snapshot_key)
        return RedisSnapshotStore.from_url(settings.redis_url, key=settings.snapshot_key)
    logger.info("Using in-memory snapshot store")
    return MemorySnapshotStore()
