"""
=============================================================================
DEMO ENDPOINTS
=============================================================================

Canned endpoints that exercise every level of the router:

    ┌────────┬──────────────┬──────────┬──────────────────────────────────┐
    │ Method │ Path         │ Level    │ data                             │
    ├────────┼──────────────┼──────────┼──────────────────────────────────┤
    │ GET    │ /users       │ exact    │ List of users                    │
    │ POST   │ /users       │ exact    │ Created user: <message>          │
    │ POST   │ /users-slow  │ exact    │ Created user slowly: <message>   │
    │ GET    │ /posts       │ exact    │ List of posts                    │
    │ POST   │ /api/data    │ exact    │ Processed: <message>             │
    │ GET    │ *            │ fallback │ API/Admin/Test/Unexpected GET    │
    │        │              │          │   fallback for <path>            │
    │ POST   │ *            │ fallback │ API POST to / General POST to    │
    │        │              │          │   <path> with: <message>         │
    │ ANY    │ *            │ catch-all│ Catch-all: <METHOD> <path>       │
    └────────┴──────────────┴──────────┴──────────────────────────────────┘

POST /users-slow sleeps in its own worker thread. It holds no shared
lock while sleeping, so other requests keep being served.
"""

import logging
import time
from typing import Callable

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok
from ..http.router import Router
from .common import ApiRequest, ApiResponse, api_endpoint


logger = logging.getLogger(__name__)


GET_FALLBACK_PREFIXES = (
    ("/api/", "API"),
    ("/admin/", "Admin"),
    ("/test/", "Test"),
)


def _reply(data: str, request: HTTPRequest) -> HTTPResponse:
    return ok(ApiResponse.success(data, request).to_dict())


class DemoHandlers:
    """
    Args:
        slow_delay: Seconds /users-slow waits before answering.
        sleep: Injected for tests that must not actually wait.
    """

    def __init__(self, slow_delay: float = 5.0, sleep: Callable[[float], None] = time.sleep):
        self.slow_delay = slow_delay
        self._sleep = sleep

    # ─────────────────────────────────────────────────────────────────────
    # EXACT ROUTES
    # ─────────────────────────────────────────────────────────────────────

    def get_users(self, request: HTTPRequest) -> HTTPResponse:
        return _reply("List of users", request)

    @api_endpoint
    def create_user(self, request: HTTPRequest) -> HTTPResponse:
        req = ApiRequest.from_request(request)
        logger.info(f"POST /users: {req}")
        return _reply(f"Created user: {req.message}", request)

    @api_endpoint
    def create_user_slow(self, request: HTTPRequest) -> HTTPResponse:
        req = ApiRequest.from_request(request)
        logger.info(f"POST /users-slow: {req} - waiting {self.slow_delay}s")
        self._sleep(self.slow_delay)
        logger.info("POST /users-slow: delay complete")
        return _reply(f"Created user slowly: {req.message}", request)

    def get_posts(self, request: HTTPRequest) -> HTTPResponse:
        return _reply("List of posts", request)

    @api_endpoint
    def process_data(self, request: HTTPRequest) -> HTTPResponse:
        req = ApiRequest.from_request(request)
        return _reply(f"Processed: {req.message}", request)

    # ─────────────────────────────────────────────────────────────────────
    # FALLBACKS
    # ─────────────────────────────────────────────────────────────────────

    def get_fallback(self, request: HTTPRequest) -> HTTPResponse:
        path = request.path
        for prefix, label in GET_FALLBACK_PREFIXES:
            if path.startswith(prefix):
                logger.info(f"GET fallback for {label.lower()}: {path}")
                return _reply(f"{label} GET fallback for {path}", request)
        return _reply(f"Unexpected GET fallback for {path}", request)

    @api_endpoint
    def post_fallback(self, request: HTTPRequest) -> HTTPResponse:
        req = ApiRequest.from_request(request)
        path = request.path
        logger.info(f"POST fallback for {path} with data: {req}")
        if path.startswith("/api/"):
            return _reply(f"API POST to {path} with: {req.message}", request)
        return _reply(f"General POST to {path} with: {req.message}", request)

    def catch_all(self, request: HTTPRequest) -> HTTPResponse:
        logger.info(f"{request.method} {request.path} catch-all")
        return _reply(f"Catch-all: {request.method} {request.path}", request)

    def register(self, router: Router) -> None:
        router.get("/users")(self.get_users)
        router.post("/users")(self.create_user)
        router.post("/users-slow")(self.create_user_slow)
        router.get("/posts")(self.get_posts)
        router.post("/api/data")(self.process_data)
        router.fallback("GET")(self.get_fallback)
        router.fallback("POST")(self.post_fallback)
        router.catch_all()(self.catch_all)
