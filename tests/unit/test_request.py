"""
Unit tests for HTTP request parsing.
"""

import pytest

from taskhub.http.request import HTTPRequest, RequestParser, HTTPParseError


def parse(data: bytes) -> HTTPRequest:
    return RequestParser().parse(data, ("127.0.0.1", 12345))


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Request line, path and client address are captured."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/get_tasks"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)
        assert request.raw == sample_get_request

    def test_parse_headers(self, sample_get_request: bytes):
        """Header names are lowercased."""
        request = parse(sample_get_request)

        assert request.headers["host"] == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        request = parse(sample_get_request)

        assert request.query_params == {"page": ["1"], "limit": ["10"]}

    def test_repeated_query_params_keep_every_value(self):
        request = parse(b"GET /get_tasks?tag=home&tag=errands HTTP/1.1\r\n\r\n")

        assert request.query_params["tag"] == ["home", "errands"]

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """JSON body is decoded on access."""
        request = parse(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/add_task"
        assert request.json == {"text": "buy milk"}
        assert request.is_keep_alive is False

    def test_invalid_json_body(self):
        """A body that is not JSON raises a 400 parse error on access."""
        raw = b"POST /add_task HTTP/1.1\r\nContent-Length: 8\r\n\r\nnot json"
        request = parse(raw)

        with pytest.raises(HTTPParseError) as exc_info:
            request.json

        assert exc_info.value.status_code == 400

    def test_empty_body_json_is_none(self):
        request = parse(b"GET /get_tasks HTTP/1.1\r\n\r\n")
        assert request.json is None

    def test_parse_url_encoded_query(self):
        raw = b"GET /search?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n"
        request = parse(raw)

        assert request.path == "/search"
        assert request.query_params["q"] == ["hello world"]

    def test_parse_invalid_method(self):
        """Unknown methods are rejected with 405."""
        raw = b"BREW /pot HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert exc_info.value.status_code == 405

    def test_parse_invalid_request_line(self):
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert exc_info.value.status_code == 400

    def test_parse_unsupported_version(self):
        raw = b"GET / HTTP/2.0\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert exc_info.value.status_code == 505

    def test_parse_missing_terminator(self):
        with pytest.raises(HTTPParseError) as exc_info:
            parse(b"GET / HTTP/1.1\r\nHost: test\r\n")

        assert "incomplete" in str(exc_info.value).lower()

    def test_parse_missing_headers(self):
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = parse(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_path_traversal_blocked(self):
        raw = b"GET /../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert "path" in str(exc_info.value).lower()

    def test_parse_request_too_large(self):
        """Oversized requests are rejected with 413."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_http_version_keep_alive_defaults(self):
        """HTTP/1.0 closes by default, HTTP/1.1 keeps the connection."""
        request_10 = parse(b"GET / HTTP/1.0\r\nHost: test\r\n\r\n")
        assert request_10.version == "HTTP/1.0"
        assert request_10.is_keep_alive is False

        request_11 = parse(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")
        assert request_11.version == "HTTP/1.1"
        assert request_11.is_keep_alive is True

    def test_body_truncated_to_content_length(self):
        """Bytes past Content-Length belong to the next request."""
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Content-Length: 9\r\n"
            b"\r\n"
            b"test bodyGET / HTTP/1.1\r\n\r\n"
        )

        request = parse(raw)
        assert request.body == b"test body"

    def test_incomplete_body(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 50\r\n\r\nshort"

        with pytest.raises(HTTPParseError):
            parse(raw)

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_bad_content_length(self, value: bytes):
        raw = b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse(raw)

        assert exc_info.value.status_code == 400

    def test_repeated_headers_are_joined(self):
        raw = b"GET / HTTP/1.1\r\nAccept: text/html\r\nAccept: application/json\r\n\r\n"
        request = parse(raw)

        assert request.get_header("Accept") == "text/html, application/json"

    def test_case_insensitive_headers(self):
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html; charset=utf-8\r\n\r\n"
        request = parse(raw)

        assert request.get_header("Content-Type") == "text/html; charset=utf-8"


class TestWebSocketUpgradeDetection:
    """Tests for HTTPRequest.is_websocket_upgrade."""

    def test_upgrade_request(self, sample_upgrade_request: bytes):
        """Connection is a token list; 'Upgrade' may be anywhere in it."""
        request = parse(sample_upgrade_request)

        assert request.is_websocket_upgrade is True

    def test_plain_get_is_not_upgrade(self, sample_get_request: bytes):
        assert parse(sample_get_request).is_websocket_upgrade is False

    def test_upgrade_header_without_connection_token(self):
        request = HTTPRequest(
            method="GET",
            path="/ws",
            headers={"upgrade": "websocket", "connection": "keep-alive"},
        )

        assert request.is_websocket_upgrade is False

    def test_post_is_never_upgrade(self):
        request = HTTPRequest(
            method="POST",
            path="/ws",
            headers={"upgrade": "websocket", "connection": "Upgrade"},
        )

        assert request.is_websocket_upgrade is False


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"
