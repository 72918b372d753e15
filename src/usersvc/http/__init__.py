"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Translates between bytes and structured messages:

    bytes ──► RequestParser ──► HTTPRequest ──► Router ──► handler
                                                              │
    bytes ◄── HTTPResponse.to_bytes() ◄── HTTPResponse ◄──────┘

=============================================================================
"""

from .request import HTTPRequest, ParserState, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    # Convenience functions for common responses
    ok,                   # 200 OK
    error_response,       # any status, {"error": ...}
    bad_request,          # 400 Bad Request
    not_found,            # 404 Not Found
    internal_error,       # 500 Internal Server Error
    service_unavailable,  # 503 Service Unavailable
)
from .router import Route, RouteMatch, Router
from .status_codes import HTTPStatus

# Public API - what you get when you do:
# from usersvc.http import *
__all__ = [
    # Request parsing
    "HTTPRequest",
    "ParserState",
    "RequestParser",
    "parse_request",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "error_response",
    "bad_request",
    "not_found",
    "internal_error",
    "service_unavailable",

    # Routing
    "Route",
    "RouteMatch",
    "Router",

    # Status codes
    "HTTPStatus",
]
