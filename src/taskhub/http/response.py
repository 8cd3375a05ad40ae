"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds and serializes HTTP/1.1 responses.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 201 Created\r\n                     ◄── status line     │
    │    Content-Type: application/json; charset=utf-8\r\n                │
    │    Content-Length: 63\r\n                       ◄── auto-added      │
    │    Date: Sun, 18 Oct 2026 12:00:00 GMT\r\n      ◄── auto-added      │
    │    Server: taskhub/1.0\r\n                      ◄── auto-added      │
    │    \r\n                                                             │
    │    {"id": "...", "text": "buy milk", "completed": false}            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Handlers build responses fluently:

    response = (ResponseBuilder()
        .status(HTTPStatus.CREATED)
        .json(task.to_dict())
        .build())

or through the one-liners at the bottom of the module (ok, created,
bad_request, not_found, ...). Every error helper produces the same JSON
shape the handlers use, ``{"status": "error", "data": <message>}``, so a
client never has to guess the format of a failure.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union
import json

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "taskhub/1.0"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized with to_bytes().

    Use ResponseBuilder or the convenience functions to create one.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """``HTTP/1.1 200 OK``"""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def set_content_type(self, content_type: str) -> "HTTPResponse":
        return self.set_header("Content-Type", content_type)

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body; strings are encoded as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def json(self) -> Any:
        """Decode the body as JSON (mostly useful in tests)."""
        return json.loads(self.body.decode("utf-8"))

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize to wire format.

        Content-Length, Date and Server are filled in when the handler
        did not set them.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"status": "success", "data": "List of users"})
            .build())
    """

    def __init__(self, server_name: str = DEFAULT_SERVER_NAME):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._server_name = server_name

    # =========================================================================
    # STATUS / HEADERS
    # =========================================================================

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Raw body. Prefer json() or text() for structured content."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Serialize ``data`` as the JSON body.

        ensure_ascii=False keeps non-ASCII task text readable on the wire.
        """
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    # =========================================================================
    # CONNECTION
    # =========================================================================

    def keep_alive(self, timeout: int = 5, max_requests: int = 100) -> "ResponseBuilder":
        self._headers["Connection"] = "keep-alive"
        self._headers["Keep-Alive"] = f"timeout={timeout}, max={max_requests}"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )

    def to_bytes(self) -> bytes:
        return self.build().to_bytes(self._server_name)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always in GMT.

        Wed, 01 Jan 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def error_body(message: str) -> Dict[str, str]:
    """The JSON body every error response carries."""
    return {"status": "error", "data": message}


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def json_response(data: Any, status: HTTPStatus = HTTPStatus.OK) -> HTTPResponse:
    return ResponseBuilder().status(status).json(data).build()


def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK. dict/list bodies become JSON, str becomes text/plain,
    bytes are sent as-is.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)

    return builder.build()


def created(body: Union[dict, list], location: Optional[str] = None) -> HTTPResponse:
    """201 Created with a JSON body."""
    builder = ResponseBuilder().status(HTTPStatus.CREATED).json(body)
    if location:
        builder.header("Location", location)
    return builder.build()


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    return ResponseBuilder().status(status).json(error_body(message)).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return error_response(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, message)


def upgrade_required(protocol: str = "websocket") -> HTTPResponse:
    """
    426 Upgrade Required, sent for a plain request to a WebSocket path.

    RFC 7231 6.5.15 requires an Upgrade header naming the protocol.
    """
    return (ResponseBuilder()
        .status(HTTPStatus.UPGRADE_REQUIRED)
        .header("Upgrade", protocol)
        .header("Connection", "Upgrade")
        .json(error_body(f"This endpoint only speaks {protocol}"))
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500. Keep the message generic; details go to the log."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
