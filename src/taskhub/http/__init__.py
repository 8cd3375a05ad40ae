"""
=============================================================================
HTTP PROTOCOL MODULE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py      raw bytes → HTTPRequest, HTTPParseError             │
    │ response.py     HTTPResponse, ResponseBuilder, ok/created/...       │
    │ router.py       (method, path) → exact / fallback / catch-all       │
    │ status_codes.py HTTPStatus enum with reason phrases                 │
    └─────────────────────────────────────────────────────────────────────┘

    REQUEST:                          RESPONSE:
    ─────────                         ──────────
    GET /path HTTP/1.1\\r\\n            HTTP/1.1 200 OK\\r\\n
    Header: Value\\r\\n                 Header: Value\\r\\n
    \\r\\n                              \\r\\n
    [body]                            [body]
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    json_response,
    ok,                 # 200 OK
    created,            # 201 Created
    error_response,
    bad_request,        # 400 Bad Request
    not_found,          # 404 Not Found
    upgrade_required,   # 426 Upgrade Required
    internal_error,     # 500 Internal Server Error
)
from .router import Router, Route, RouteMatch, RouteKind, Method
from .status_codes import HTTPStatus


__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "json_response",
    "ok",
    "created",
    "error_response",
    "bad_request",
    "not_found",
    "upgrade_required",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "RouteKind",
    "Method",

    # Status codes
    "HTTPStatus",
]
