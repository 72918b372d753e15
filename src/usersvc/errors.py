"""
=============================================================================
SERVICE ERROR TAXONOMY
=============================================================================

Every failure the service knows how to describe to a client is an exception
from this module. Each one carries the HTTP status it maps to, so the layer
that catches it can build a response without a lookup table.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHERE EACH ERROR IS RAISED                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   RequestParser   ──► MalformedRequest   (400)  ─┐                   │
    │   Router          ──► RouteNotFound      (404)  ─┴─► connection loop │
    │                                                                      │
    │   UserHandlers    ──► InvalidId          (400)  ─┐                   │
    │                   ──► InvalidBody        (400)   │                   │
    │   UserStore       ──► NotFound           (404)   ├─► handlers        │
    │                   ──► StorageError       (500)  ─┘                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""


class ServiceError(Exception):
    """
    Base class for errors that become an HTTP error response.

    Attributes:
        message: Text placed in the {"error": ...} response body.
        status_code: HTTP status code (int) for the response.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class MalformedRequest(ServiceError):
    """The bytes on the wire are not a request we can parse."""

    status_code = 400


class RouteNotFound(ServiceError):
    """No (method, path) pattern in the routing table matches."""

    status_code = 404


class InvalidId(ServiceError):
    """An {id} path segment is not an integer."""

    status_code = 400


class InvalidBody(ServiceError):
    """Request body is not JSON, or a required field is missing or empty."""

    status_code = 400


class NotFound(ServiceError):
    """The store has no row for the requested id."""

    status_code = 404


class StorageError(ServiceError):
    """
    The store is unreachable or rejected a statement.

    The message is safe to send to clients; the driver exception is kept
    as __cause__ for the logs.
    """

    status_code = 500
