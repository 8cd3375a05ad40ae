"""
Unit tests for HTTP response building.
"""

from datetime import datetime, timezone

import pytest

from taskhub.http.response import (
    HTTPResponse,
    ResponseBuilder,
    created,
    error_response,
    format_http_date,
    internal_error,
    not_found,
    ok,
    upgrade_required,
)
from taskhub.http.status_codes import HTTPStatus


class TestHTTPResponse:
    """Tests for HTTPResponse serialization."""

    def test_status_line(self):
        response = HTTPResponse(status=HTTPStatus.CREATED)
        assert response.status_line == "HTTP/1.1 201 Created"

    def test_to_bytes_fills_standard_headers(self):
        """Content-Length, Date and Server are added when missing."""
        response = HTTPResponse(body=b"hello")
        raw = response.to_bytes("taskhub-test")

        head, _, body = raw.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Length: 5" in head
        assert b"Date: " in head
        assert b"Server: taskhub-test" in head
        assert body == b"hello"

    def test_to_bytes_keeps_explicit_headers(self):
        response = HTTPResponse(headers={"Server": "custom"}, body=b"")
        assert b"Server: custom" in response.to_bytes()

    def test_set_header_chaining(self):
        response = HTTPResponse()
        result = response.set_header("X-One", "1").set_content_type("text/plain")

        assert result is response
        assert response.headers == {"X-One": "1", "Content-Type": "text/plain"}

    def test_set_body_encodes_text(self):
        response = HTTPResponse().set_body("café")
        assert response.body == "café".encode("utf-8")


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_json_body(self):
        response = ResponseBuilder().json({"text": "buy milk"}).build()

        assert response.headers["Content-Type"] == "application/json; charset=utf-8"
        assert response.json() == {"text": "buy milk"}

    def test_json_keeps_non_ascii(self):
        """Task text is not escaped to \\uXXXX on the wire."""
        response = ResponseBuilder().json({"text": "pão"}).build()
        assert "pão".encode("utf-8") in response.body

    def test_text_body(self):
        response = ResponseBuilder().text("pong").build()

        assert response.body == b"pong"
        assert response.headers["Content-Type"].startswith("text/plain")

    def test_keep_alive(self):
        response = ResponseBuilder().keep_alive(timeout=7).build()

        assert response.headers["Connection"] == "keep-alive"
        assert response.headers["Keep-Alive"].startswith("timeout=7")

    def test_close_connection(self):
        response = ResponseBuilder().close_connection().build()
        assert response.headers["Connection"] == "close"

    def test_method_chaining(self):
        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .header("X-Request-ID", "abc12345")
            .json({"status": "error"})
            .build())

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.headers["X-Request-ID"] == "abc12345"
        assert response.json() == {"status": "error"}

    def test_builder_to_bytes_uses_server_name(self):
        raw = ResponseBuilder(server_name="tests/0").text("x").to_bytes()
        assert b"Server: tests/0" in raw


class TestConvenienceFunctions:
    """Tests for ok/created/error helpers."""

    def test_ok_with_list(self):
        response = ok([{"id": "1"}])

        assert response.status == HTTPStatus.OK
        assert response.json() == [{"id": "1"}]

    def test_ok_with_text(self):
        response = ok("plain")
        assert response.headers["Content-Type"].startswith("text/plain")

    def test_created(self):
        response = created({"id": "abc"}, location="/tasks/abc")

        assert response.status == HTTPStatus.CREATED
        assert response.headers["Location"] == "/tasks/abc"

    def test_error_shape(self):
        """Every error helper uses the same JSON shape."""
        for response, status in [
            (not_found("No route matches GET /nope"), HTTPStatus.NOT_FOUND),
            (internal_error(), HTTPStatus.INTERNAL_SERVER_ERROR),
            (error_response(HTTPStatus.BAD_REQUEST, "bad"), HTTPStatus.BAD_REQUEST),
        ]:
            assert response.status == status
            body = response.json()
            assert body["status"] == "error"
            assert isinstance(body["data"], str)

    def test_upgrade_required(self):
        response = upgrade_required()

        assert response.status == HTTPStatus.UPGRADE_REQUIRED
        assert response.headers["Upgrade"] == "websocket"
        assert response.headers["Connection"] == "Upgrade"


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    @pytest.mark.parametrize("status, phrase", [
        (HTTPStatus.OK, "OK"),
        (HTTPStatus.NOT_FOUND, "Not Found"),
        (HTTPStatus.UPGRADE_REQUIRED, "Upgrade Required"),
    ])
    def test_status_phrases(self, status: HTTPStatus, phrase: str):
        assert status.phrase == phrase

    def test_status_categories(self):
        assert HTTPStatus.CREATED.is_success
        assert not HTTPStatus.CREATED.is_error
        assert HTTPStatus.BAD_REQUEST.is_error
        assert HTTPStatus.SERVICE_UNAVAILABLE.is_error


class TestFormatHTTPDate:
    """Tests for format_http_date."""

    def test_format(self):
        dt = datetime(2026, 10, 18, 9, 5, 3, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Sun, 18 Oct 2026 09:05:03 GMT"
