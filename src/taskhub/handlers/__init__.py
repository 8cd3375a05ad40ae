"""
Request handlers.

    TaskHandlers    /add_task, /get_tasks, /toggle_task
    DemoHandlers    /users, /users-slow, /posts, /api/data, fallbacks, catch-all
    HealthHandler   /health, /health/live
"""

from .common import ApiRequest, ApiResponse, api_endpoint, read_json_object
from .demo import DemoHandlers
from .health import HealthCheck, HealthHandler, HealthStatus
from .tasks import TaskHandlers


__all__ = [
    "ApiRequest",
    "ApiResponse",
    "api_endpoint",
    "read_json_object",
    "DemoHandlers",
    "HealthCheck",
    "HealthHandler",
    "HealthStatus",
    "TaskHandlers",
]
