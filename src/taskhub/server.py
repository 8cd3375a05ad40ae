"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

Ties the pieces together.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    SERVER ARCHITECTURE                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │    Router    │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────────────┘        │
    │           ▼                   ▼                                     │
    │    ┌──────────────┐    ┌────────────────────────────────┐          │
    │    │  Connection  │    │ HTTP keep-alive loop           │          │
    │    └──────────────┘    │   or WebSocketSession → WsHub  │          │
    │                        └────────────────────────────────┘          │
    │                                                                      │
    │           ┌─────────────────────────────────────────┐               │
    │           │  Middleware: Logging → Errors → Router  │               │
    │           └─────────────────────────────────────────┘               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CONNECTION LIFECYCLE (worker thread)
=============================================================================

    1. read_request()          bytes up to Content-Length
    2. RequestParser.parse()   HTTPParseError → 4xx/5xx, close
    3. Upgrade to a mounted WebSocket path?
         yes → the socket moves to a session thread of its own, outside
               the pool, and WebSocketSession.run() owns it until it
               closes. The worker goes back to serving HTTP.
    4. middleware + router → HTTPResponse (exceptions → 500)
    5. send, then keep-alive or close

A plain GET to a WebSocket path is routed like any other request and
answered with 426 Upgrade Required by the handler mount_websocket()
registers for it.
"""

import logging
import threading
from typing import Callable, Dict, Optional, Set, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, ResponseBuilder, HTTPStatus,
    Router, upgrade_required,
)
from .http.response import error_body
from .http.router import normalize_path
from .middleware import MiddlewarePipeline, Middleware
from .ws import WebSocketSession, WsHub


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Threaded HTTP/1.1 + WebSocket server.

        server = HTTPServer(ServerConfig(port=8080))

        @server.get("/users")
        def list_users(request):
            return ok({"status": "success", "data": "List of users"})

        server.mount_websocket("/ws", hub)
        server.use(LoggingMiddleware())
        server.run()
    """

    def __init__(self, config: Optional[ServerConfig] = None, router: Optional[Router] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = router or Router()
        self._middleware = MiddlewarePipeline()
        self._ws_endpoints: Dict[str, WsHub] = {}
        self._ws_threads: Set[threading.Thread] = set()
        self._ws_lock = threading.Lock()

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware; the first added is outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def thread_pool(self) -> ThreadPool:
        return self._thread_pool

    def route(self, path: Optional[str], method: Optional[str] = None, **kwargs):
        return self._router.route(path, method, **kwargs)

    def get(self, path: str, **kwargs):
        return self._router.get(path, **kwargs)

    def post(self, path: str, **kwargs):
        return self._router.post(path, **kwargs)

    def put(self, path: str, **kwargs):
        return self._router.put(path, **kwargs)

    def delete(self, path: str, **kwargs):
        return self._router.delete(path, **kwargs)

    def patch(self, path: str, **kwargs):
        return self._router.patch(path, **kwargs)

    def mount_websocket(self, path: str, hub: WsHub) -> None:
        """
        Serve WebSocket upgrades on ``path`` with ``hub``.

        Also registers GET ``path`` so that a request without upgrade
        headers gets 426 instead of falling through to a GET fallback.
        """
        path = normalize_path(path)
        if path in self._ws_endpoints:
            raise ValueError(f"A WebSocket endpoint is already mounted at {path}")

        def websocket_only(request: HTTPRequest) -> HTTPResponse:
            return upgrade_required()

        self._router.add_route(path, websocket_only, method="GET", name="websocket_only")
        self._ws_endpoints[path] = hub

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port even when configured as 0."""
        return self._socket_server.address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Serve until stop() or SIGINT/SIGTERM. Blocks.

        The router is frozen here; registering routes afterwards raises.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._router.freeze()
        self._handler = self._middleware.wrap(self._router.handle)

        self._socket_server.bind()
        self._thread_pool.start()
        self._running = True

        host, port = self.address
        logger.info(f"Starting HTTP server on {host}:{port}")
        self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self) -> None:
        """Ask run() to return. Safe from any thread."""
        self._running = False
        self._socket_server.shutdown()

    def _print_startup_banner(self):
        host, port = self.address
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  {self.config.server_name} running")
        print(f"  http://{host}:{port}")
        for path in sorted(self._ws_endpoints):
            print(f"  ws://{host}:{port}{path}")
        print(f"  Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        self._router.print_routes()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("taskhub").setLevel(level)

    def _shutdown(self):
        """
        Stop accepting, let WebSocket sessions send their close frames
        (they notice within ws_poll_interval), then stop the workers.
        """
        logger.info("Shutting down server...")
        self._running = False
        grace = self.config.ws_poll_interval + 2.0
        with self._ws_lock:
            sessions = list(self._ws_threads)
        for thread in sessions:
            thread.join(timeout=grace)
        self._thread_pool.shutdown(wait=True, timeout=grace)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING (worker threads)
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            block=False,
        )
        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """HTTP keep-alive loop; hands the socket to a session on upgrade."""
        handed_off = False
        try:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        self._send_error(conn, HTTPStatus(e.status_code), str(e))
                        break

                    hub = self._websocket_hub_for(request)
                    if hub is not None:
                        handed_off = self._start_websocket(conn, request, hub)
                        break

                    response = self._dispatch(conn, request)
                    keep_alive = request.is_keep_alive and self.config.keep_alive

                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive",
                            f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                    if not conn.send_response(response.to_bytes(self.config.server_name)):
                        break
                    if not keep_alive:
                        break
                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except ValueError as e:
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                    break
                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break
        finally:
            if not handed_off:
                conn.close()

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            return (ResponseBuilder()
                .status(HTTPStatus.INTERNAL_SERVER_ERROR)
                .json(error_body("Internal Server Error"))
                .build())

    def _websocket_hub_for(self, request: HTTPRequest) -> Optional[WsHub]:
        if not request.is_websocket_upgrade:
            return None
        return self._ws_endpoints.get(normalize_path(request.path))

    def _start_websocket(self, conn: Connection, request: HTTPRequest, hub: WsHub) -> bool:
        """
        Move the connection to a dedicated session thread.

        Returns:
            True if the session thread now owns ``conn``. False if the
            upgrade was refused with 503 and the caller still owns it.
        """
        thread = threading.Thread(
            target=self._serve_websocket,
            args=(conn, request, hub),
            name=f"ws-session-{conn.id}",
            daemon=True,
        )
        with self._ws_lock:
            if len(self._ws_threads) >= self.config.ws_max_connections:
                full = True
            else:
                full = False
                self._ws_threads.add(thread)

        if full:
            logger.warning(f"[{conn.id}] WebSocket limit reached, refusing upgrade")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Too many WebSocket connections")
            return False

        thread.start()
        return True

    def _serve_websocket(self, conn: Connection, request: HTTPRequest, hub: WsHub) -> None:
        logger.info(f"[{conn.id}] WebSocket upgrade from {conn.client_ip} on {request.path}")
        session = WebSocketSession(
            conn,
            hub,
            max_message_size=self.config.ws_max_message_size,
            poll_interval=self.config.ws_poll_interval,
            send_queue_size=self.config.ws_send_queue_size,
            is_running=lambda: self._running,
        )
        try:
            with conn:
                session.run(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] WebSocket session error: {e}")
        finally:
            with self._ws_lock:
                self._ws_threads.discard(threading.current_thread())

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Errors raised before a request reaches the middleware chain."""
        response = (ResponseBuilder()
            .status(status)
            .json(error_body(message))
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(self.config.server_name))
