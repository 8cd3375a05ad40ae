"""
=============================================================================
WEBSOCKET SESSION
=============================================================================

Drives one upgraded connection. Framing, masking, the handshake
response, ping/pong and the closing handshake come from the
``websockets`` sans-I/O ServerProtocol; this class only moves bytes
between it and the socket and hands complete text messages to the hub.

    socket ──recv──► protocol.receive_data() ──► events ──► hub.handle_text()
                              │
    socket ◄─sendall─ protocol.data_to_send() ◄── writer thread ◄── outbox ◄── send_text()

=============================================================================
THREADING
=============================================================================

The read loop runs in a thread of its own, outside the HTTP worker pool.
Hub pushes arrive from whichever thread executed a command, while that
thread holds the store lock, so send_text() only puts the text on a
bounded outbox. A second per-session thread drains the outbox onto the
socket. The reader and the writer touch the protocol object only while
holding the session lock.

A full outbox or a failed write makes the hub drop the channel, which
calls abort(): the socket is shut down in both directions and the read
loop ends on the resulting EOF.

Reads time out every ``poll_interval`` seconds so the loop can notice
a server shutdown and send a 1001 (going away) close frame.
"""

import logging
import queue
import socket
import threading
from typing import Callable, List, Optional

from websockets.exceptions import InvalidState
from websockets.frames import Frame, Opcode
from websockets.http11 import Request
from websockets.protocol import State
from websockets.server import ServerProtocol

from ..core.connection import Connection
from ..http.request import HTTPRequest
from .hub import Channel, WsHub


logger = logging.getLogger(__name__)


CONTROL_FRAME_NAMES = {
    Opcode.PING: "ping",
    Opcode.PONG: "pong",
    Opcode.CLOSE: "close",
}


class WebSocketSession(Channel):
    """
    One WebSocket client.

    Usage (in a thread that owns the connection):
        session = WebSocketSession(conn, hub, max_message_size=65536,
                                   poll_interval=1.0, send_queue_size=256,
                                   is_running=server_is_running)
        session.run(request)   # returns when the client or server closes
    """

    def __init__(
        self,
        connection: Connection,
        hub: WsHub,
        max_message_size: int = 64 * 1024,
        poll_interval: float = 1.0,
        send_queue_size: int = 256,
        is_running: Callable[[], bool] = lambda: True,
    ):
        self.connection = connection
        self.hub = hub
        self.poll_interval = poll_interval
        self.channel_id = hub.next_channel_id()
        self.protocol = ServerProtocol(max_size=max_message_size)

        self._is_running = is_running
        self._lock = threading.Lock()
        self._message_opcode: Optional[Opcode] = None
        self._fragments: List[bytes] = []

        self._outbox: "queue.Queue[str]" = queue.Queue(maxsize=send_queue_size)
        self._closed = threading.Event()
        self._writer: Optional[threading.Thread] = None

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    def run(self, request: HTTPRequest) -> None:
        """Complete the handshake, then serve frames until closed."""
        pending = self._handshake(request)
        if pending is None:
            return

        self.connection.upgrade(self.poll_interval)
        self._writer = threading.Thread(
            target=self._write_loop,
            name=f"ws-writer-{self.channel_id}",
            daemon=True,
        )
        self._writer.start()
        self.hub.connect(self)
        try:
            for event in pending:
                self._dispatch(event)
            self._read_loop()
        finally:
            self.hub.disconnect(self.channel_id)
            self._closed.set()
            self._writer.join(timeout=self.poll_interval * 2)

    def _handshake(self, request: HTTPRequest) -> Optional[list]:
        """
        Replay the already-parsed upgrade request into the protocol.

        Returns:
            Events that arrived together with the handshake, or None if
            the handshake was rejected.
        """
        with self._lock:
            self.protocol.receive_data(request.raw + self.connection.take_buffer())
            events = self.protocol.events_received()
            if not events or not isinstance(events[0], Request):
                logger.warning(f"[{self.connection.id}] Incomplete WebSocket handshake")
                return None

            response = self.protocol.accept(events[0])
            self.protocol.send_response(response)
            sent = self._flush_locked()

        if response.status_code != 101 or not sent:
            logger.info(
                f"[{self.connection.id}] WebSocket handshake rejected "
                f"({response.status_code}): {self.protocol.handshake_exc}"
            )
            return None

        logger.debug(
            f"[{self.connection.id}] Upgraded to WebSocket as channel {self.channel_id}"
        )
        return events[1:]

    def _read_loop(self) -> None:
        while not self._closed.is_set():
            if not self._is_running():
                self.close(1001, "server shutting down")
                return

            try:
                data = self.connection.recv()
            except socket.timeout:
                continue
            except OSError as e:
                logger.debug(f"Channel {self.channel_id}: read failed: {e}")
                return

            with self._lock:
                if data:
                    self.protocol.receive_data(data)
                else:
                    self.protocol.receive_eof()
                events = self.protocol.events_received()
                self._flush_locked()

            for event in events:
                self._dispatch(event)

            if not data or self.protocol.close_expected() or self.protocol.state is State.CLOSED:
                return

    # ─────────────────────────────────────────────────────────────────────
    # INBOUND
    # ─────────────────────────────────────────────────────────────────────

    def _dispatch(self, event: object) -> None:
        if not isinstance(event, Frame):
            return

        opcode = event.opcode

        if opcode in CONTROL_FRAME_NAMES:
            # ServerProtocol already answered pings and close frames
            self.hub.handle_frame(self.channel_id, CONTROL_FRAME_NAMES[opcode])
            return

        if opcode in (Opcode.TEXT, Opcode.BINARY):
            self._message_opcode = opcode
            self._fragments = [bytes(event.data)]
        elif opcode is Opcode.CONT and self._message_opcode is not None:
            self._fragments.append(bytes(event.data))
        else:
            return

        if not event.fin:
            return

        message_opcode, payload = self._message_opcode, b"".join(self._fragments)
        self._message_opcode, self._fragments = None, []

        if message_opcode is Opcode.BINARY:
            self.hub.handle_frame(self.channel_id, "binary")
            return

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Channel {self.channel_id}: dropping non UTF-8 text frame")
            return
        self.hub.handle_text(self.channel_id, text)

    # ─────────────────────────────────────────────────────────────────────
    # OUTBOUND
    # ─────────────────────────────────────────────────────────────────────

    def send_text(self, text: str) -> bool:
        if self._closed.is_set():
            return False
        try:
            self._outbox.put_nowait(text)
        except queue.Full:
            logger.warning(
                f"Channel {self.channel_id}: {self._outbox.maxsize} messages "
                f"unsent, client is not reading"
            )
            return False
        return True

    def abort(self) -> None:
        self._closed.set()
        self.connection.abort()

    def _write_loop(self) -> None:
        while not self._closed.is_set():
            try:
                text = self._outbox.get(timeout=self.poll_interval)
            except queue.Empty:
                continue

            with self._lock:
                try:
                    self.protocol.send_text(text.encode("utf-8"))
                except InvalidState:
                    # Closing handshake under way
                    return
                sent = self._flush_locked()

            if not sent:
                self.hub.drop(self.channel_id)
                return

    def close(self, code: int = 1000, reason: str = "") -> None:
        """Start the closing handshake; a no-op if already closing."""
        with self._lock:
            try:
                self.protocol.send_close(code, reason)
            except InvalidState:
                return
            self._flush_locked()

    def _flush_locked(self) -> bool:
        """Write whatever the protocol produced. Caller holds self._lock."""
        for data in self.protocol.data_to_send():
            if data:
                if not self.connection.send_all(data):
                    return False
            else:
                # b"" means the protocol wants the TCP write side closed
                self.connection.shutdown_write()
        return True
