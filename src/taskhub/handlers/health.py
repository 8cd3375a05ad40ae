"""
=============================================================================
HEALTH CHECK HANDLER
=============================================================================

    /health         every registered check; 200 if all pass, else 503
    /health/live    liveness only: 200 while the process can answer

Healthy (200 OK):
    {
        "status": "healthy",
        "uptime_seconds": 42,
        "checks": {
            "task_store": {"status": "healthy", "message": "OK", "tasks": 3},
            "websocket":  {"status": "healthy", "message": "OK", "connections": 2}
        }
    }

A check that raises counts as unhealthy. Responses carry
``Cache-Control: no-store`` so a proxy never serves a stale verdict.
"""

import platform
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus


@dataclass
class HealthStatus:
    """Result of one check."""

    healthy: bool
    message: str = "OK"
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "status": "healthy" if self.healthy else "unhealthy",
            "message": self.message,
            **self.details,
        }


HealthCheck = Callable[[], HealthStatus]


class HealthHandler:
    """
    Usage:
        health = HealthHandler()
        health.add_check("task_store", lambda: HealthStatus(True, details={"tasks": len(store)}))

        router.get("/health")(health.handle)
        router.get("/health/live")(health.liveness)
    """

    def __init__(self, include_details: bool = True, include_system_info: bool = False):
        self.include_details = include_details
        self.include_system_info = include_system_info
        self._checks: Dict[str, HealthCheck] = {}
        self._start_time = time.time()

    def add_check(self, name: str, check: HealthCheck) -> "HealthHandler":
        """Checks run on every /health request, so keep them cheap."""
        self._checks[name] = check
        return self

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        results = {}
        all_healthy = True

        for name, check in self._checks.items():
            try:
                status = check()
                results[name] = status.to_dict()
                if not status.healthy:
                    all_healthy = False
            except Exception as e:
                results[name] = {"status": "unhealthy", "error": str(e)}
                all_healthy = False

        response_data: Dict[str, Any] = {
            "status": "healthy" if all_healthy else "unhealthy",
            "uptime_seconds": int(self.uptime),
        }

        if self.include_details and results:
            response_data["checks"] = results

        if self.include_system_info:
            response_data["system"] = {
                "hostname": platform.node(),
                "platform": platform.system(),
                "python_version": sys.version.split()[0],
            }

        http_status = HTTPStatus.OK if all_healthy else HTTPStatus.SERVICE_UNAVAILABLE

        return (ResponseBuilder()
            .status(http_status)
            .json(response_data)
            .header("Cache-Control", "no-store")
            .build())

    def liveness(self, request: HTTPRequest) -> HTTPResponse:
        """Never consults the checks; a restart would not fix them."""
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"status": "alive"})
            .header("Cache-Control", "no-store")
            .build())

    @property
    def uptime(self) -> float:
        return time.time() - self._start_time
