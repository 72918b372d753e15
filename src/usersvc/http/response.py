"""
=============================================================================
HTTP RESPONSE WRITER
=============================================================================

Serializes handler results into HTTP/1.1 response bytes.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 404 Not Found\r\n          ◄── status line               │
    │    Content-Type: application/json\r\n  ◄── headers                   │
    │    Content-Length: 26\r\n                  (Content-Length, Date and │
    │    Date: Sat, 17 Oct 2026 12:00:00 GMT\r\n  Server are auto-added)   │
    │    Server: usersvc/1.0.0\r\n                                         │
    │    Connection: keep-alive\r\n                                        │
    │    \r\n                                ◄── end of headers            │
    │    {"error":"User not found"}          ◄── body                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every body this service produces is JSON:

    User          {"id":1,"name":"Ada","email":"ada@x.com"}
    List          [{"id":1,...},{"id":2,...}]
    Delete ack    {"message":"User 1 deleted"}
    Error         {"error":"..."}

JSON is written compactly with a fixed key order, so the same data always
serializes to the same bytes.

=============================================================================
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be written to a socket.

    Build one with ResponseBuilder or the helpers at the bottom of this
    module, then call to_bytes().
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = "usersvc") -> bytes:
        """
        Serialize the response.

        Content-Length is always recomputed from the body, so a stale value
        can never reach the wire. Date and Server are added when missing.
        """
        response_headers = dict(self.headers)
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
    Fluent builder for responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .json({"error": "User not found"})
            .close_connection()
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Set a JSON body and Content-Type.

        ensure_ascii=False keeps non-ASCII names readable; the body is still
        UTF-8 bytes and Content-Length counts bytes, not characters.
        """
        self._body = json.dumps(
            data, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a UTC datetime as an RFC 7231 IMF-fixdate.

    Example: "Sat, 17 Oct 2026 12:00:00 GMT"

    Day and month names are spelled out here instead of using strftime,
    whose %a/%b follow the process locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok(user.to_dict())
#     return error_response(HTTPStatus.NOT_FOUND, "User not found")
#
# =============================================================================

def ok(data: Any) -> HTTPResponse:
    """200 OK with a JSON body."""
    return ResponseBuilder().status(HTTPStatus.OK).json(data).build()


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """Error response with the {"error": message} body."""
    return ResponseBuilder().status(status).json({"error": message}).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return error_response(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, message)


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500 response. Keep the message generic, details belong in the logs."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)


def service_unavailable(message: str = "Server overloaded") -> HTTPResponse:
    return error_response(HTTPStatus.SERVICE_UNAVAILABLE, message)
