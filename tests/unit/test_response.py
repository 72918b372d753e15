"""
Unit tests for HTTP response building.
"""

import json
from datetime import datetime, timezone

import pytest

from usersvc.http.response import (
    JSON_CONTENT_TYPE,
    HTTPResponse,
    ResponseBuilder,
    bad_request,
    error_response,
    format_http_date,
    internal_error,
    not_found,
    ok,
    service_unavailable,
)
from usersvc.http.status_codes import HTTPStatus


def split_response(raw: bytes):
    """Split serialized bytes into (status line, headers dict, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    headers = dict(line.split(": ", 1) for line in lines[1:])
    return lines[0], headers, body


class TestHTTPStatus:
    """Tests for the status enum."""

    @pytest.mark.parametrize("status,phrase", [
        (HTTPStatus.OK, "OK"),
        (HTTPStatus.BAD_REQUEST, "Bad Request"),
        (HTTPStatus.NOT_FOUND, "Not Found"),
        (HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error"),
        (HTTPStatus.SERVICE_UNAVAILABLE, "Service Unavailable"),
    ])
    def test_phrases(self, status, phrase):
        assert status.phrase == phrase

    def test_categories(self):
        assert HTTPStatus.OK.is_success
        assert HTTPStatus.NOT_FOUND.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error
        assert not HTTPStatus.BAD_REQUEST.is_server_error


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        """Test status line generation."""
        response = HTTPResponse(status=HTTPStatus.OK)
        assert response.status_line == "HTTP/1.1 200 OK"

        response = HTTPResponse(status=HTTPStatus.NOT_FOUND)
        assert response.status_line == "HTTP/1.1 404 Not Found"

    def test_to_bytes_layout(self):
        """Status line, CRLF-separated headers, blank line, then body."""
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers={"X-Custom": "value"},
            body=b"test",
        )

        raw = response.to_bytes()

        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"X-Custom: value\r\n" in raw
        assert raw.endswith(b"\r\n\r\ntest")

    def test_content_length_always_recomputed(self):
        response = HTTPResponse(headers={"Content-Length": "999"}, body=b"abc")

        _, headers, body = split_response(response.to_bytes())

        assert headers["Content-Length"] == "3"
        assert body == b"abc"

    def test_empty_body_has_zero_length(self):
        _, headers, body = split_response(HTTPResponse().to_bytes())

        assert headers["Content-Length"] == "0"
        assert body == b""

    def test_date_and_server_added(self):
        _, headers, _ = split_response(HTTPResponse().to_bytes("usersvc/test"))

        assert headers["Server"] == "usersvc/test"
        assert headers["Date"].endswith(" GMT")

    def test_existing_server_header_kept(self):
        response = HTTPResponse(headers={"Server": "custom"})

        _, headers, _ = split_response(response.to_bytes("usersvc/test"))

        assert headers["Server"] == "custom"

    def test_set_header_chains(self):
        response = HTTPResponse().set_header("X-A", "1").set_header("X-B", "2")

        assert response.headers == {"X-A": "1", "X-B": "2"}


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_json_body(self):
        response = ResponseBuilder().json({"id": 1, "name": "Ada"}).build()

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == JSON_CONTENT_TYPE
        assert response.body == b'{"id":1,"name":"Ada"}'

    def test_json_is_deterministic(self):
        data = {"id": 1, "name": "Ada", "email": "ada@x.com"}

        first = ResponseBuilder().json(data).build().body
        second = ResponseBuilder().json(dict(data)).build().body

        assert first == second

    def test_non_ascii_length_counts_bytes(self):
        response = ResponseBuilder().json({"name": "Zoë"}).build()

        _, headers, body = split_response(response.to_bytes())

        assert json.loads(body.decode("utf-8")) == {"name": "Zoë"}
        assert int(headers["Content-Length"]) == len(body)
        assert len(body) > len('{"name":"Zoë"}')

    def test_status_accepts_int(self):
        response = ResponseBuilder().status(404).build()

        assert response.status is HTTPStatus.NOT_FOUND

    def test_close_connection(self):
        response = ResponseBuilder().close_connection().build()

        assert response.headers["Connection"] == "close"

    def test_custom_header(self):
        response = ResponseBuilder().header("X-Request-ID", "abc").build()

        assert response.headers["X-Request-ID"] == "abc"


class TestConvenienceFunctions:
    """Tests for convenience response functions."""

    def test_ok(self):
        response = ok([{"id": 1}])

        assert response.status == HTTPStatus.OK
        assert response.body == b'[{"id":1}]'

    def test_error_response_body(self):
        response = error_response(HTTPStatus.NOT_FOUND, "User 3 not found")

        assert response.status == HTTPStatus.NOT_FOUND
        assert json.loads(response.body) == {"error": "User 3 not found"}
        assert response.headers["Content-Type"] == JSON_CONTENT_TYPE

    @pytest.mark.parametrize("factory,status", [
        (bad_request, HTTPStatus.BAD_REQUEST),
        (not_found, HTTPStatus.NOT_FOUND),
        (internal_error, HTTPStatus.INTERNAL_SERVER_ERROR),
        (service_unavailable, HTTPStatus.SERVICE_UNAVAILABLE),
    ])
    def test_error_helpers(self, factory, status):
        response = factory()

        assert response.status == status
        assert "error" in json.loads(response.body)


class TestHTTPDate:
    """Tests for HTTP date formatting."""

    def test_format(self):
        dt = datetime(2026, 10, 17, 9, 5, 3, tzinfo=timezone.utc)

        assert format_http_date(dt) == "Sat, 17 Oct 2026 09:05:03 GMT"
