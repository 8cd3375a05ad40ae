"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted TCP socket.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Lifecycle                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ─┐      │
    │              ▲                                               │      │
    │              └───────────────────────────────────────────────┘      │
    │                                                                      │
    │   READING ──► (GET /ws + Upgrade) ──► UPGRADED                      │
    │                 the socket now carries WebSocket frames, owned       │
    │                 by a WebSocketSession until it closes                │
    │                                                                      │
    │   any state ──► CLOSING ──► CLOSED                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

TCP delivers bytes in arbitrary chunks, so read_request() buffers until
the headers and Content-Length bytes of body have arrived. Bytes that
arrive past the end of a request stay in the buffer for the next one,
or, after an upgrade, are handed to the WebSocket protocol via
take_buffer().
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    UPGRADED = "upgraded"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used as a log prefix.
        requests_handled: HTTP requests read on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        Subsequent requests on a kept-alive connection use the shorter
        keep_alive_timeout; running out of it there is a normal close.

        Returns:
            The request bytes, or None if the peer closed the connection
            or went idle between keep-alive requests.

        Raises:
            TimeoutError: The first request did not arrive in time.
            ValueError: The request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self.recv()
                if not chunk:
                    return None
                self._buffer += chunk
                if len(self._buffer) > self.max_request_size:
                    raise ValueError(f"Request too large: {len(self._buffer)} bytes")

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise ValueError(f"Request too large: {body_start + content_length} bytes")

            while len(self._buffer) - body_start < content_length:
                chunk = self.recv()
                if not chunk:
                    break
                self._buffer += chunk

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if self.state != ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

    def recv(self) -> bytes:
        """
        One recv() call. An abrupt disconnect reads as EOF.

        socket.timeout is left to the caller.
        """
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError, ConnectionAbortedError):
            return b""
        self.last_activity = time.time()
        return data

    def take_buffer(self) -> bytes:
        """Hand over (and clear) bytes read past the last request."""
        data, self._buffer = self._buffer, b""
        return data

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Find Content-Length before the full parse. A malformed value reads
        as 0 here; RequestParser rejects it properly.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_all(self, data: bytes) -> bool:
        """
        sendall() the data.

        Returns:
            True on success, False if the peer is gone or the send timed out.
        """
        if self.state == ConnectionState.CLOSED:
            return False
        if self.state != ConnectionState.UPGRADED:
            self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def send_response(self, data: bytes) -> bool:
        return self.send_all(data)

    # =========================================================================
    # UPGRADE / CLOSE
    # =========================================================================

    def upgrade(self, poll_interval: float) -> None:
        """
        Switch to WebSocket mode.

        Reads wake up every ``poll_interval`` seconds so the session can
        notice a server shutdown; that timeout also bounds every send.
        """
        self.state = ConnectionState.UPGRADED
        self.socket.settimeout(poll_interval)

    def shutdown_write(self) -> None:
        """Half-close: send FIN but keep reading."""
        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

    def abort(self) -> None:
        """
        Shut both directions down from any thread. A blocked recv() in the
        owning thread returns EOF, and the owner then close()s as usual.
        """
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def close(self):
        """
        Close gracefully: FIN, drain what the peer still sends, release
        the descriptor. Safe to call twice.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        self.shutdown_write()

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
