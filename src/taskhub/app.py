"""
=============================================================================
APPLICATION FACTORY
=============================================================================

Builds the fully wired task tracker:

    TaskStore ◄──── TaskHandlers     POST /add_task, GET /get_tasks, POST /toggle_task
        │
        └─────────► WsHub            GET  /ws  (upgrade; plain GET → 426)

    DemoHandlers    /users, /users-slow, /posts, /api/data, fallbacks, catch-all
    HealthHandler   /health, /health/live

    Middleware:     LoggingMiddleware → ErrorMiddleware → Router

The store and the hub share one lock, so HTTP and WebSocket mutations
are serialized against each other.
"""

from typing import Optional

from .config import ServerConfig
from .handlers import DemoHandlers, HealthHandler, HealthStatus, TaskHandlers
from .middleware import ErrorMiddleware, LoggingMiddleware
from .server import HTTPServer
from .store import TaskStore
from .ws import WsHub


HEALTH_PATHS = ["/health", "/health/live"]


def create_app(
    config: Optional[ServerConfig] = None,
    store: Optional[TaskStore] = None,
    demo_routes: bool = True,
) -> HTTPServer:
    """
    Args:
        config: Defaults to ServerConfig.from_env().
        store: Pass one in to share or pre-populate the task list.
        demo_routes: Register the demo endpoints, fallbacks and catch-all.
            Without them an unknown route answers 404.

    The returned server exposes ``store`` and ``hub`` for callers and tests.
    """
    config = config or ServerConfig.from_env()
    store = store if store is not None else TaskStore()
    hub = WsHub(store)

    server = HTTPServer(config)
    server.use(LoggingMiddleware(log_format=config.log_format, skip_paths=HEALTH_PATHS))
    server.use(ErrorMiddleware())

    TaskHandlers(store).register(server.router)

    health = HealthHandler()
    health.add_check("task_store", lambda: HealthStatus(True, details={"tasks": len(store)}))
    health.add_check(
        "websocket",
        lambda: HealthStatus(True, details={"connections": hub.connection_count}),
    )
    health.add_check("thread_pool", lambda: _thread_pool_check(server))
    server.get("/health")(health.handle)
    server.get("/health/live")(health.liveness)

    server.mount_websocket(config.ws_path, hub)

    # Registered last so the catch-all listing comes after real routes
    if demo_routes:
        DemoHandlers(slow_delay=config.slow_delay).register(server.router)

    server.store = store
    server.hub = hub
    return server


def _thread_pool_check(server: HTTPServer) -> HealthStatus:
    stats = server.thread_pool.stats
    workers = stats["workers"]
    if workers["total"] and not workers["idle"] and stats["jobs"]["queued"]:
        return HealthStatus(False, "All workers busy", details=workers)
    return HealthStatus(True, details=workers)
