"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The subset of RFC 7231 / RFC 6455 status codes this server emits.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  1xx   │ 101 Switching Protocols  - WebSocket upgrade accepted    │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  2xx   │ 200 OK, 201 Created                                      │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request          - malformed body or envelope    │
    │        │ 404 Not Found            - unknown task or no route      │
    │        │ 405 Method Not Allowed   - unparseable method token      │
    │        │ 408 Request Timeout      - client went quiet             │
    │        │ 413 Payload Too Large    - over max_request_size         │
    │        │ 426 Upgrade Required     - plain GET on the WS path      │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Server Error, 503 Service Unavailable,      │
    │        │ 505 HTTP Version Not Supported                           │
    └────────┴───────────────────────────────────────────────────────────┘
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes with reason phrases.

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    SWITCHING_PROTOCOLS = 101

    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    UPGRADE_REQUIRED = 426

    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line (``HTTP/1.1 200 OK``)."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.SWITCHING_PROTOCOLS: "Switching Protocols",
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.UPGRADE_REQUIRED: "Upgrade Required",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
