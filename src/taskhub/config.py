"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables live in one dataclass so the rest of the code never reads
the environment directly.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m taskhub --port 3000                             │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── TASKHUB_PORT=3000 python -m taskhub                       │
    │                                                                      │
    │   3. Defaults in this dataclass                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Values are validated once at startup (ServerConfig.validate) so that a
bad port or worker count fails immediately instead of on first request.
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the task tracker server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK       host, port, backlog, buffer_size, timeout
    HTTP          keep_alive, keep_alive_timeout, max_request_size
    THREADING     min_workers, max_workers
    WEBSOCKET     ws_path, ws_max_message_size, ws_poll_interval,
                  ws_max_connections, ws_send_queue_size
    DEMO          slow_delay
    LOGGING       log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    port: int = 8080
    """0 lets the OS pick a free port (used by the test suite)."""

    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    """Socket timeout for reading the first request on a connection."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024  # 1 MB

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 32
    """Caps in-flight HTTP connections. WebSocket sessions run outside the pool."""

    # ─────────────────────────────────────────────────────────────────────
    # WEBSOCKET SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    ws_path: str = "/ws"
    ws_max_message_size: int = 64 * 1024
    ws_poll_interval: float = 1.0
    """How often an idle WS read loop wakes up to check for shutdown."""
    ws_max_connections: int = 256
    """Upgrades beyond this many open sessions are refused with 503."""
    ws_send_queue_size: int = 256
    """Outbound messages a slow client may fall behind before it is dropped."""

    # ─────────────────────────────────────────────────────────────────────
    # DEMO HANDLERS
    # ─────────────────────────────────────────────────────────────────────

    slow_delay: float = 5.0
    """Seconds POST /users-slow waits before answering."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    server_name: str = "taskhub/1.0"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        TASKHUB_HOST        Server host (default: 127.0.0.1)
        TASKHUB_PORT        Server port (default: 8080)
        TASKHUB_WORKERS     Max worker threads (default: 32)
        TASKHUB_TIMEOUT     Request read timeout in seconds (default: 30)
        TASKHUB_WS_PATH     WebSocket endpoint (default: /ws)
        TASKHUB_SLOW_DELAY  Delay for /users-slow (default: 5)
        TASKHUB_LOG_LEVEL   Logging level (default: INFO)
        TASKHUB_LOG_FORMAT  "text" or "json" (default: text)
        """
        return cls(
            host=os.getenv("TASKHUB_HOST", "127.0.0.1"),
            port=int(os.getenv("TASKHUB_PORT", "8080")),
            max_workers=int(os.getenv("TASKHUB_WORKERS", "32")),
            timeout=float(os.getenv("TASKHUB_TIMEOUT", "30")),
            ws_path=os.getenv("TASKHUB_WS_PATH", "/ws"),
            slow_delay=float(os.getenv("TASKHUB_SLOW_DELAY", "5")),
            log_level=os.getenv("TASKHUB_LOG_LEVEL", "INFO"),
            log_format=os.getenv("TASKHUB_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """Raise ValueError on the first invalid setting."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if not self.ws_path.startswith("/"):
            raise ValueError(f"ws_path must start with '/': {self.ws_path!r}")

        if self.ws_poll_interval <= 0:
            raise ValueError("ws_poll_interval must be > 0")

        if self.ws_max_connections < 1:
            raise ValueError("ws_max_connections must be >= 1")

        if self.ws_send_queue_size < 1:
            raise ValueError("ws_send_queue_size must be >= 1")

        if self.slow_delay < 0:
            raise ValueError("slow_delay must be >= 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
