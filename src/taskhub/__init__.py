"""
=============================================================================
TASKHUB - In-Memory Task Tracker over HTTP and WebSocket
=============================================================================

One process, one shared task list, two ways in:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   HTTP client ──POST /add_task──┐                                   │
    │                                 ▼                                   │
    │                           ┌───────────┐                             │
    │   WS client ──add_task──► │ TaskStore │ ──task_added──► all WS      │
    │                           └───────────┘                   clients   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    taskhub/
    ├── __main__.py          # CLI entry point (python -m taskhub)
    ├── app.py               # create_app(): wires store, hub, routes
    ├── server.py            # HTTPServer: keep-alive loop + WS upgrade
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # TaskhubError hierarchy
    ├── store.py             # Task, TaskStore
    ├── core/                # sockets, connections, thread pool
    ├── http/                # request parsing, responses, router
    ├── middleware/          # logging, error mapping
    ├── handlers/            # task, demo and health endpoints
    └── ws/                  # envelopes, hub, sessions

=============================================================================
QUICK START
=============================================================================

    from taskhub import create_app, ServerConfig

    server = create_app(ServerConfig(port=8080))
    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig
from .app import create_app

__all__ = ["HTTPServer", "ServerConfig", "create_app", "__version__"]
