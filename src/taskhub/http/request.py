"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects
(RFC 7230 message syntax).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    POST /add_task?src=cli HTTP/1.1\r\n          ◄── request line    │
    │    Host: localhost:8080\r\n                     ◄── headers         │
    │    Content-Type: application/json\r\n                               │
    │    Content-Length: 20\r\n                                           │
    │    \r\n                                         ◄── separator       │
    │    {"text": "buy milk"}                         ◄── body            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The same parser reads the opening handshake of a WebSocket connection:
a GET carrying ``Upgrade: websocket`` and ``Connection: Upgrade``. Such a
request is flagged by HTTPRequest.is_websocket_upgrade and handed over,
raw bytes included, to the WebSocket session instead of the router.

Malformed input raises HTTPParseError with the status code to send back:
400 for bad syntax, 405 for an unknown method, 413 when the request is
larger than max_request_size, 505 for an HTTP version other than 1.0/1.1.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from urllib.parse import parse_qs, unquote
import json


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code that should be returned to the client.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

        method:         GET, POST, ... (uppercase)
        path:           Request path without query string, URL-decoded
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header dict with LOWERCASE keys
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes (exactly Content-Length)
        client_address: (ip, port) of the peer
        raw:            The original bytes, needed to replay a WebSocket
                        handshake into the protocol object
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = b""

    _body_json: Optional[Any] = field(default=None, repr=False)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def json(self) -> Any:
        """
        The body decoded as JSON (cached after the first access).

        Returns None for an empty body. The Content-Type header is not
        checked: clients that forget it are still served.

        Raises:
            HTTPParseError: If the body is not valid UTF-8 JSON.
        """
        if self._body_json is None and self.body:
            try:
                self._body_json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._body_json

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection unless ``Connection: close``;
        HTTP/1.0 closes it unless ``Connection: keep-alive``.
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    @property
    def is_websocket_upgrade(self) -> bool:
        """
        True for a WebSocket opening handshake (RFC 6455 section 4.1).

        The Connection header is a token list ("keep-alive, Upgrade"), so
        it is split rather than compared as a whole.
        """
        if self.method != "GET":
            return False
        upgrade = self.headers.get("upgrade", "").lower()
        tokens = [
            token.strip().lower()
            for token in self.headers.get("connection", "").split(",")
        ]
        return upgrade == "websocket" and "upgrade" in tokens

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Turns the bytes Connection.read_request() collected into an HTTPRequest.

        ┌──────────────┬──────────────────────────────────────┬────────┐
        │ step         │ rejects                              │ status │
        ├──────────────┼──────────────────────────────────────┼────────┤
        │ size         │ more than max_request_size bytes     │  413   │
        │ head         │ no blank line after the headers      │  400   │
        │ request line │ not three fields / bad target        │  400   │
        │              │ method outside ALLOWED_METHODS       │  405   │
        │              │ version other than 1.0 / 1.1         │  505   │
        │ body         │ Content-Length bad or not satisfied  │  400   │
        └──────────────┴──────────────────────────────────────┴────────┘

    Header lines without a colon are ignored rather than rejected.
    """

    ALLOWED_METHODS = frozenset(
        ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
    )
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple[str, int] = ("", 0)) -> HTTPRequest:
        """
        Args:
            data: One request: head, blank line, then at least Content-Length
                bytes of body. Anything after the body is ignored.
            client_address: Peer (ip, port), kept for access logging.

        Raises:
            HTTPParseError: Carrying the status to answer with.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes "
                f"(limit {self.max_request_size})",
                status_code=413,
            )

        head, separator, rest = data.partition(b"\r\n\r\n")
        if not separator:
            raise HTTPParseError("Incomplete request: headers are not terminated")

        start_line, *header_lines = head.decode("latin-1").split("\r\n")
        if not start_line:
            raise HTTPParseError("Empty request")

        method, target, version = self._split_start_line(start_line)
        path, query_params = self._split_target(target)
        headers = self._collect_headers(header_lines)
        length = self._body_length(headers)

        if len(rest) < length:
            raise HTTPParseError(
                f"Incomplete body: Content-Length is {length}, got {len(rest)} bytes"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=rest[:length],
            client_address=client_address,
            raw=data,
        )

    def _split_start_line(self, line: str) -> tuple[str, str, str]:
        parts = line.split(" ")
        if len(parts) != 3 or not all(parts):
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = parts
        if method not in self.ALLOWED_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)
        if not version.startswith("HTTP/"):
            raise HTTPParseError(f"Invalid request line: {line!r}")
        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)
        return method, target, version

    def _split_target(self, target: str) -> tuple[str, Dict[str, list[str]]]:
        """"/a%20b?x=1" → ("/a b", {"x": ["1"]}). Dot segments are refused."""
        raw_path, _, query = target.partition("?")
        path = unquote(raw_path) or "/"
        if not path.startswith("/"):
            raise HTTPParseError(f"Invalid request target: {target!r}")
        if ".." in path:
            raise HTTPParseError("Invalid path: contains ..")
        return path, parse_qs(query, keep_blank_values=True)

    def _collect_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Lowercase names; a repeated header is joined with ", " and an
        obs-fold continuation line is appended to the header above it.
        """
        headers: Dict[str, str] = {}
        last: Optional[str] = None

        for line in lines:
            if line[:1] in (" ", "\t"):
                if last is not None:
                    headers[last] = f"{headers[last]} {line.strip()}"
                continue

            name, colon, value = line.partition(":")
            name = name.strip().lower()
            if not colon or not name:
                continue

            value = value.strip()
            headers[name] = f"{headers[name]}, {value}" if name in headers else value
            last = name

        return headers

    def _body_length(self, headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0
        if not raw.isdigit():
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        return int(raw)

