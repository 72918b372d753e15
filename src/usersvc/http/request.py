"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw byte stream of a client connection into HTTPRequest objects.
Implements the HTTP/1.1 subset this service speaks (RFC 7230 message
syntax, Content-Length framing only).

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    POST /users HTTP/1.1\r\n              ◄── request line            │
    │    Host: localhost:8080\r\n              ◄── headers                 │
    │    Content-Type: application/json\r\n                                │
    │    Content-Length: 35\r\n                                            │
    │    \r\n                                  ◄── end of headers          │
    │    {"name":"Ada","email":"ada@x.com"}    ◄── body (35 bytes)         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSER STATE MACHINE
=============================================================================

TCP is a byte stream. A single recv() may hold half a request line, or one
and a half requests. The parser therefore keeps a buffer and a state, and
advances only as far as the buffered bytes allow:

        feed(bytes)
            │
            ▼
    ┌──────────────┐  CRLF-terminated   ┌──────────────┐
    │  READ_LINE   │ ─────────────────► │ READ_HEADERS │ ◄──┐ header line
    └──────────────┘   request line     └──────┬───────┘ ───┘
                                               │ empty line
                                               ▼
                                        ┌──────────────┐
                                        │  READ_BODY   │  Content-Length
                                        └──────┬───────┘  bytes buffered
                                               ▼
                                        ┌──────────────┐
                                        │     DONE     │ ──► HTTPRequest
                                        └──────────────┘     (then reset)

Each state either consumes bytes and moves on, returns None ("need more
data"), or raises MalformedRequest. Failures are therefore localized to the
state that saw them.

=============================================================================
WHAT IS REJECTED (MalformedRequest)
=============================================================================

- A request line without exactly METHOD SP PATH SP VERSION
- A method outside SUPPORTED_METHODS, a version other than HTTP/1.0|1.1
- A header line without a colon
- Transfer-Encoding (chunked bodies are not supported)
- A Content-Length that is not a non-negative integer in ASCII digits
- A header block or body larger than max_request_size

=============================================================================
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

from ..errors import InvalidBody, MalformedRequest


logger = logging.getLogger(__name__)


class ParserState(Enum):
    """Where the parser is inside the current message."""

    READ_LINE = "read_line"        # Waiting for the request line
    READ_HEADERS = "read_headers"  # Reading "Name: value" lines
    READ_BODY = "read_body"        # Waiting for Content-Length bytes
    DONE = "done"                  # A full message is ready


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         "GET", "POST", "PUT", "DELETE"...
        path:           Request path without query string ("/users/42")
        version:        "HTTP/1.1" or "HTTP/1.0", drives keep-alive
        headers:        Ordered (name, value) pairs exactly as received
        body:           Raw body bytes (empty without Content-Length)
        path_params:    Filled in by the router ({"id": "42"})
        client_address: (ip, port) of the peer, for logging

    Headers are kept as an ordered list, not a dict: repeated headers
    survive and the original order is available to whoever needs it.
    Lookups are case-insensitive through get_header().

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    path_params: Dict[str, str] = field(default_factory=dict)
    client_address: Tuple[str, int] = ("", 0)

    _body_json: Optional[Any] = field(default=None, repr=False)

    def get_header(self, name: str, default: str = "") -> str:
        """
        Get the first value of a header (case-insensitive).

        Example:
            request.get_header("content-length")  # Same as "Content-Length"
        """
        wanted = name.lower()
        for header_name, value in self.headers:
            if header_name.lower() == wanted:
                return value
        return default

    @property
    def content_length(self) -> int:
        """Content-Length as an int, 0 when absent."""
        value = self.get_header("content-length")
        return int(value) if value else 0

    @property
    def user_agent(self) -> str:
        return self.get_header("user-agent")

    @property
    def json(self) -> Any:
        """
        Parse the body as JSON (cached after the first call).

        Returns None for an empty body.

        Raises:
            InvalidBody: If the body is not valid UTF-8 JSON.
        """
        if self._body_json is None and self.body:
            try:
                self._body_json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise InvalidBody(f"Invalid JSON body: {e}")
        return self._body_json

    @property
    def is_keep_alive(self) -> bool:
        """
        Should the connection stay open after the response?

        HTTP/1.1: keep-alive unless "Connection: close"
        HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.get_header("connection").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


class RequestParser:
    """
    Incremental HTTP/1.1 request parser.

    One parser belongs to one connection. Bytes are pushed in with feed()
    and complete requests are pulled out with next_request(). Bytes that
    belong to the following request stay buffered.

    Usage:
        parser = RequestParser()
        parser.feed(chunk)
        request = parser.next_request()   # None until a full message arrived
    """

    SUPPORTED_METHODS = {"GET", "POST", "PUT", "DELETE"}
    SUPPORTED_VERSIONS = {"HTTP/1.0", "HTTP/1.1"}

    def __init__(self, max_request_size: int = 1024 * 1024):
        """
        Args:
            max_request_size: Upper bound in bytes for the request line plus
                              headers, and separately for the body.
        """
        self.max_request_size = max_request_size
        self._buffer = bytearray()
        self._reset()

    def _reset(self) -> None:
        """Forget the current message (the buffer is kept)."""
        self.state = ParserState.READ_LINE
        self._method = ""
        self._path = ""
        self._version = ""
        self._headers: List[Tuple[str, str]] = []
        self._content_length = 0
        self._body = b""
        self._header_bytes = 0

    @property
    def has_partial_request(self) -> bool:
        """True if some bytes of an unfinished request have been received."""
        return self.state != ParserState.READ_LINE or bool(self._buffer.strip())

    def feed(self, data: bytes) -> None:
        """Append bytes received from the socket."""
        self._buffer.extend(data)

    def next_request(
        self,
        client_address: Tuple[str, int] = ("", 0)
    ) -> Optional[HTTPRequest]:
        """
        Advance the state machine as far as the buffered bytes allow.

        Returns:
            A complete HTTPRequest, or None if more bytes are needed.

        Raises:
            MalformedRequest: If the buffered bytes cannot be a valid request.
        """
        while True:
            if self.state == ParserState.READ_LINE:
                line = self._take_line()
                if line is None:
                    return None
                if not line:
                    # Stray CRLF between requests on a kept-alive connection
                    continue
                self._parse_request_line(line)
                self.state = ParserState.READ_HEADERS

            elif self.state == ParserState.READ_HEADERS:
                line = self._take_line()
                if line is None:
                    return None
                if line:
                    self._headers.append(self._parse_header(line))
                else:
                    self._content_length = self._body_length()
                    self.state = ParserState.READ_BODY

            elif self.state == ParserState.READ_BODY:
                if len(self._buffer) < self._content_length:
                    return None
                self._body = bytes(self._buffer[:self._content_length])
                del self._buffer[:self._content_length]
                self.state = ParserState.DONE

            else:  # ParserState.DONE
                request = HTTPRequest(
                    method=self._method,
                    path=self._path,
                    version=self._version,
                    headers=self._headers,
                    body=self._body,
                    client_address=client_address,
                )
                self._reset()
                return request

    # =========================================================================
    # STATE HELPERS
    # =========================================================================

    def _take_line(self) -> Optional[str]:
        """
        Pop one CRLF-terminated line off the buffer.

        Returns None (and leaves the buffer alone) if no full line is
        buffered yet.
        """
        end = self._buffer.find(b"\r\n")
        if end == -1:
            if self._header_bytes + len(self._buffer) > self.max_request_size:
                raise MalformedRequest("Request header section too large")
            return None

        self._header_bytes += end + 2
        if self._header_bytes > self.max_request_size:
            raise MalformedRequest("Request header section too large")

        line = bytes(self._buffer[:end])
        del self._buffer[:end + 2]
        return line.decode("utf-8", errors="replace")

    def _parse_request_line(self, line: str) -> None:
        """
        Parse "METHOD SP PATH SP VERSION".

            "GET /users/42?verbose=1 HTTP/1.1"
             ─┬─ ─────────┬───────── ────┬───
              │           │              │
            method   path (query dropped) version
        """
        parts = line.split(" ")
        if len(parts) != 3 or not all(parts):
            raise MalformedRequest(f"Invalid request line: {line!r}")

        method, target, version = parts

        if method not in self.SUPPORTED_METHODS:
            raise MalformedRequest(f"Unsupported method: {method!r}")

        if version not in self.SUPPORTED_VERSIONS:
            raise MalformedRequest(f"Unsupported HTTP version: {version!r}")

        if not target.startswith("/"):
            raise MalformedRequest(f"Invalid request target: {target!r}")

        self._method = method
        self._path = unquote(target.split("?", 1)[0])
        self._version = version

    def _parse_header(self, line: str) -> Tuple[str, str]:
        """Parse "Name: value" (whitespace around the value is dropped)."""
        name, sep, value = line.partition(":")
        name = name.strip()
        if not sep or not name:
            raise MalformedRequest(f"Invalid header line: {line!r}")
        return name, value.strip()

    def _body_length(self) -> int:
        """
        Decide how many body bytes follow the headers.

        Only Content-Length framing is supported. Any Transfer-Encoding
        (chunked included) is refused outright.
        """
        lengths = []
        for name, value in self._headers:
            lowered = name.lower()
            if lowered == "transfer-encoding":
                raise MalformedRequest(
                    f"Transfer-Encoding not supported: {value!r}"
                )
            if lowered == "content-length":
                lengths.append(value)

        if not lengths:
            return 0

        if len(set(lengths)) > 1:
            raise MalformedRequest("Conflicting Content-Length headers")

        value = lengths[0]
        if not (value.isascii() and value.isdigit()):
            raise MalformedRequest(f"Invalid Content-Length: {value!r}")

        length = int(value)
        if length > self.max_request_size:
            raise MalformedRequest(f"Request body too large: {length} bytes")
        return length


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """
    Parse one complete request held in memory.

    Raises:
        MalformedRequest: If the bytes are invalid or stop mid-request.
    """
    parser = RequestParser(max_request_size=max_size)
    parser.feed(data)
    request = parser.next_request(client_address)
    if request is None:
        raise MalformedRequest("Incomplete request")
    return request
