"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Everything above TCP
(HTTP parsing, WebSocket upgrade) happens in the callback it is given.

    ┌───────────────────────┐
    │   Listening Socket    │ ◄── bind() once, port 0 means "any free port"
    └───────────┬───────────┘
                │ accept()
    ┌───────────┼───────────────────────┐
    ▼           ▼                       ▼
  Connection  Connection            Connection
  (HTTP)      (HTTP, keep-alive)    (upgraded to WebSocket)

Socket options:

    SO_REUSEADDR   restart immediately instead of waiting out TIME_WAIT
    TCP_NODELAY    small WebSocket frames go out without Nagle delay

accept() uses a one second timeout so the loop notices shutdown().

SIGINT and SIGTERM trigger a graceful shutdown, but Python only allows
installing signal handlers from the main thread. When the server runs
in a background thread (the test suite does this) the handlers are
simply not installed.
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Usage:
        server = SocketServer(config)
        server.bind()                       # optional; start() binds if needed
        print(server.address)               # real port when config.port == 0
        server.start(handle_connection)     # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None
        self._ready_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening, else the configured one."""
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen.

        Returns:
            The bound (host, port).
        """
        if self._socket is not None:
            return self.address

        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        sock.listen(self.config.backlog)
        self._socket = sock
        self._bound_address = sock.getsockname()[:2]
        return self._bound_address

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown(). Blocks.

        Args:
            connection_handler: Receives each accepted Connection; must not
                block (the HTTP server hands it to the thread pool).
        """
        self.bind()
        self._running = True
        self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop accepting. Idempotent and safe from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop is running."""
        return self._ready_event.wait(timeout)

