"""Snapshot store backed by a Redis key."""

from __future__ import annotations

import json
import logging

import redis

from poll_app.core.ports import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_KEY = "livepoll:session"


class RedisSnapshotStore:
    """Stores the session snapshot as one JSON document under ``key``.

    Connection and command errors (``redis.RedisError``) propagate to the
    caller. Only a missing or unreadable document is treated as "no snapshot".
    """

    def __init__(self, client: redis.Redis, key: str = DEFAULT_SNAPSHOT_KEY) -> None:
        self._client = client
        self._key = key

    @classmethod
    def from_url(cls, url: str, key: str = DEFAULT_SNAPSHOT_KEY) -> "RedisSnapshotStore":
        client = redis.Redis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, key)

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> Snapshot | None:
        raw = self._client.get(self._key)
        if raw is None:
            return None
        try:
            snapshot = json.loads(raw)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
            logger.warning("Ignoring unreadable poll snapshot under %s", self._key)
            return None
        if not isinstance(snapshot, dict):
            logger.warning("Ignoring poll snapshot under %s: not a JSON object", self._key)
            return None
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        self._client.set(self._key, json.dumps(snapshot, separators=(",", ":")))

    def clear(self) -> None:
        self._client.delete(self._key)

    def close(self) -> None:
        self._client.close()
