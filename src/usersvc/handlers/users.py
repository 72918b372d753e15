"""
=============================================================================
USER RESOURCE HANDLERS
=============================================================================

One handler per CRUD verb. Each one turns an HTTPRequest into exactly one
UserStore call and the call's result into an HTTPResponse.

    ┌────────────────────┬──────────────────────────┬─────────────────────┐
    │ Route              │ Store call               │ 200 body            │
    ├────────────────────┼──────────────────────────┼─────────────────────┤
    │ POST   /users      │ create_user(name, email) │ User                │
    │ GET    /users      │ list_users()             │ [User, ...]         │
    │ GET    /users/{id} │ get_user(id)             │ User                │
    │ PUT    /users/{id} │ update_user(id, ...)     │ User                │
    │ DELETE /users/{id} │ delete_user(id)          │ {"message": ...}    │
    └────────────────────┴──────────────────────────┴─────────────────────┘

=============================================================================
ERROR MAPPING
=============================================================================

    InvalidId, InvalidBody   ──► 400 {"error": ...}
    NotFound                 ──► 404 {"error": ...}
    StorageError             ──► 500 {"error": ...}  (generic text)

Anything else escapes the handler and is turned into a 500 by the server,
which also logs the traceback.

=============================================================================
"""

import functools
import logging
import re
from typing import Any, Tuple

from ..errors import InvalidBody, InvalidId, ServiceError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, error_response, ok
from ..http.router import Handler, Router
from ..http.status_codes import HTTPStatus
from ..storage.store import UserStore


logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"-?[0-9]+")

# Range of the id column (32-bit signed integer)
MIN_ID = -2 ** 31
MAX_ID = 2 ** 31 - 1


def maps_service_errors(handler: Handler) -> Handler:
    """Turn a ServiceError raised by the handler into its error response."""

    @functools.wraps(handler)
    def wrapper(*args, **kwargs) -> HTTPResponse:
        try:
            return handler(*args, **kwargs)
        except ServiceError as e:
            if e.status_code >= 500:
                logger.warning(f"{handler.__name__} failed: {e.message}")
            return error_response(HTTPStatus(e.status_code), e.message)

    return wrapper


def parse_user_id(raw: str) -> int:
    """
    Parse an {id} path segment.

    Only ASCII decimal digits with an optional leading minus are accepted,
    so "abc", "1.5", "+1" and " 1" are all rejected.

    Raises:
        InvalidId: Not an integer, or outside the id column's range.
    """
    if not _ID_PATTERN.fullmatch(raw):
        raise InvalidId(f"Invalid user id: {raw!r}")

    user_id = int(raw)
    if not MIN_ID <= user_id <= MAX_ID:
        raise InvalidId(f"User id out of range: {raw}")
    return user_id


def parse_user_body(request: HTTPRequest) -> Tuple[str, str]:
    """
    Extract (name, email) from a JSON body.

    Both fields must be present, strings and non-empty. Other fields are
    ignored.

    Raises:
        InvalidBody: Body missing, not JSON, not an object, or a field is
                     missing, empty or not a string.
    """
    if not request.body:
        raise InvalidBody("Request body is required")

    data: Any = request.json
    if not isinstance(data, dict):
        raise InvalidBody("Request body must be a JSON object")

    values = []
    for field_name in ("name", "email"):
        value = data.get(field_name)
        if value is None:
            raise InvalidBody(f"Missing field: {field_name}")
        if not isinstance(value, str):
            raise InvalidBody(f"Field must be a string: {field_name}")
        if not value:
            raise InvalidBody(f"Field must not be empty: {field_name}")
        values.append(value)

    return values[0], values[1]


class UserHandlers:
    """
    Handlers for the /users resource.

        handlers = UserHandlers(store)
        handlers.register(router)
    """

    def __init__(self, store: UserStore):
        self.store = store

    def register(self, router: Router) -> None:
        """Add the five routes in matching order."""
        router.add_route("POST", "/users", self.create_user)
        router.add_route("GET", "/users", self.list_users)
        router.add_route("GET", "/users/{id}", self.get_user)
        router.add_route("PUT", "/users/{id}", self.update_user)
        router.add_route("DELETE", "/users/{id}", self.delete_user)

    @maps_service_errors
    def create_user(self, request: HTTPRequest) -> HTTPResponse:
        name, email = parse_user_body(request)
        user = self.store.create_user(name, email)
        logger.info(f"Created user {user.id}")
        return ok(user.to_dict())

    @maps_service_errors
    def list_users(self, request: HTTPRequest) -> HTTPResponse:
        return ok([user.to_dict() for user in self.store.list_users()])

    @maps_service_errors
    def get_user(self, request: HTTPRequest) -> HTTPResponse:
        user_id = parse_user_id(request.path_params["id"])
        return ok(self.store.get_user(user_id).to_dict())

    @maps_service_errors
    def update_user(self, request: HTTPRequest) -> HTTPResponse:
        # Id first: PUT /users/abc is 400 for the id whatever the body
        user_id = parse_user_id(request.path_params["id"])
        name, email = parse_user_body(request)
        user = self.store.update_user(user_id, name, email)
        logger.info(f"Updated user {user.id}")
        return ok(user.to_dict())

    @maps_service_errors
    def delete_user(self, request: HTTPRequest) -> HTTPResponse:
        user_id = parse_user_id(request.path_params["id"])
        self.store.delete_user(user_id)
        logger.info(f"Deleted user {user_id}")
        return ok({"message": f"User {user_id} deleted"})
