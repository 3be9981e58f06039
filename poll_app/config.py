"""Runtime settings read from the environment."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from poll_app.constants.network_constants import DEFAULT_CORS_ORIGIN, DEFAULT_HOST, DEFAULT_PORT
from poll_app.storage.redis_store import DEFAULT_SNAPSHOT_KEY


class Settings(BaseSettings):
    """Deployment options. Every field can be set as ``LIVEPOLL_<NAME>``."""

    model_config = SettingsConfigDict(env_prefix="LIVEPOLL_", env_file=".env", extra="ignore")

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cors_origin: str = DEFAULT_CORS_ORIGIN
    log_level: str = "INFO"

    store_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = Field(default="redis://localhost:6379/0")
    snapshot_key: str = DEFAULT_SNAPSHOT_KEY

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]


def get_settings() -> Settings:
    return Settings()
