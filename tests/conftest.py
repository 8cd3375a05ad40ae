"""
pytest configuration and fixtures.
"""

import http.client
import json
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from taskhub import HTTPServer, ServerConfig, create_app
from taskhub.store import TaskStore


@pytest.fixture
def sample_get_request() -> bytes:
    """GET /get_tasks with a query string and keep-alive."""
    return (
        b"GET /get_tasks?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """POST /add_task with a JSON body."""
    body = b'{"text": "buy milk"}'
    return (
        b"POST /add_task HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def sample_upgrade_request() -> bytes:
    """WebSocket opening handshake (RFC 6455 section 1.2 sample key)."""
    return (
        b"GET /ws HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Upgrade: websocket\r\n"
        b"Connection: keep-alive, Upgrade\r\n"
        b"Sec-WebSocket-Key: dGhlIHNhbXBsZSBub25jZQ==\r\n"
        b"Sec-WebSocket-Version: 13\r\n"
        b"\r\n"
    )


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=16,
        timeout=5.0,
        ws_poll_interval=0.2,
        slow_delay=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def store() -> TaskStore:
    return TaskStore()


class LiveServer:
    """Runs an HTTPServer in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    @property
    def ws_url(self) -> str:
        return f"ws://127.0.0.1:{self.port}{self.server.config.ws_path}"

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
    ) -> Tuple[int, Dict[str, str], Any]:
        """
        One request on a fresh connection.

        Returns:
            (status, lowercase headers, decoded JSON body or None)
        """
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=timeout)
        try:
            payload = None
            send_headers = dict(headers or {})
            if body is not None:
                payload = body if isinstance(body, bytes) else json.dumps(body).encode()
                send_headers.setdefault("Content-Type", "application/json")
            conn.request(method, path, body=payload, headers=send_headers)
            response = conn.getresponse()
            raw = response.read()
            response_headers = {k.lower(): v for k, v in response.getheaders()}
            data = json.loads(raw) if raw else None
            return response.status, response_headers, data
        finally:
            conn.close()


@pytest.fixture
def live_server(config: ServerConfig) -> Generator[LiveServer, None, None]:
    """The full application with demo routes."""
    srv = LiveServer(create_app(config))
    srv.start()

    yield srv

    srv.stop()


@pytest.fixture
def bare_server(config: ServerConfig) -> Generator[LiveServer, None, None]:
    """The application without demo routes, so unknown paths answer 404."""
    srv = LiveServer(create_app(config, demo_routes=False))
    srv.start()

    yield srv

    srv.stop()


@pytest.fixture
def make_server(config: ServerConfig) -> Generator[Callable[..., LiveServer], None, None]:
    """Start the full application with some config fields overridden."""
    started: List[LiveServer] = []

    def factory(**overrides) -> LiveServer:
        srv = LiveServer(create_app(replace(config, **overrides)))
        srv.start()
        started.append(srv)
        return srv

    yield factory

    for srv in started:
        srv.stop()
