"""Network configuration constants for the poll server."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 4000
DEFAULT_CORS_ORIGIN: str = "*"
WEBSOCKET_PATH: str = "/ws"
