"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One log line per HTTP request, in either of two formats:

    text (Apache-like):
        127.0.0.1 - - [18/Oct/2026:12:00:00 +0000] "POST /add_task" 201 63 0.41ms

    json:
        {"request_id": "3f2a9c1e", "method": "POST", "path": "/add_task",
         "status_code": 201, "duration_ms": 0.41, ...}

Every response also carries an ``X-Request-ID`` header. A client that
sends its own X-Request-ID gets the same value echoed back, so a request
can be traced across services.

Records go to the "taskhub.access" logger, which can be routed or
silenced on its own:

    logging.getLogger("taskhub.access").setLevel(logging.WARNING)
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("taskhub.access")


@dataclass
class RequestLog:
    """One access-log record."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware. Add it FIRST so its timing covers the
    whole chain and rejected requests are logged too.

        pipeline.add(LoggingMiddleware(log_format="json", skip_paths=["/health"]))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Add X-Request-ID to every response.
            log_level: Level the access line is emitted at.
            skip_paths: Paths that are served but not logged, e.g. health checks.
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"Unknown log format: {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = request.get_header("x-request-id") or uuid.uuid4().hex[:8]
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if request.path in self.skip_paths:
            return response

        log_entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=str(request.query_params) if request.query_params else "",
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(self.log_level, log_entry.to_text())

        return response
