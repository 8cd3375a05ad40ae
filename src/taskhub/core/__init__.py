"""
=============================================================================
CORE NETWORKING
=============================================================================

    socket_server.py   listening socket + accept loop
    connection.py      one client socket: buffered reads, graceful close,
                       switch to WebSocket mode
    thread_pool.py     workers that serve connections concurrently

    SocketServer.accept() ──► Connection ──► ThreadPool.submit()
                                                  │
                                        worker: HTTP keep-alive loop
                                                or WebSocketSession
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool


__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
