"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The subset of RFC 7231 status codes this service emits.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    STATUS CODES IN USE                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   200 OK                     Every successful CRUD operation         │
    │   400 Bad Request            Malformed request, bad id, bad body     │
    │   404 Not Found              No route, or no such user               │
    │   500 Internal Server Error  Store failure, unexpected exception     │
    │   503 Service Unavailable    Worker pool saturated                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes as an IntEnum.

    IntEnum members compare equal to plain ints:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus(404).phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    NOT_FOUND = 404

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line ("HTTP/1.1 404 Not Found")."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
