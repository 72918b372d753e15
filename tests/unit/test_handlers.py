"""
Unit tests for the /users handlers.
"""

import json

import pytest

from usersvc.errors import InvalidBody, InvalidId, StorageError
from usersvc.handlers import UserHandlers, parse_user_body, parse_user_id
from usersvc.handlers.users import MAX_ID, MIN_ID
from usersvc.http.request import HTTPRequest
from usersvc.http.router import Router
from usersvc.http.status_codes import HTTPStatus


def make_request(method: str, path: str, body=None, user_id=None) -> HTTPRequest:
    """Build a request as the router would hand it to a handler."""
    if body is None:
        raw = b""
    elif isinstance(body, bytes):
        raw = body
    else:
        raw = json.dumps(body).encode("utf-8")

    request = HTTPRequest(method=method, path=path, body=raw)
    if user_id is not None:
        request.path_params = {"id": str(user_id)}
    return request


def body_of(response):
    return json.loads(response.body.decode("utf-8"))


@pytest.fixture
def handlers(store):
    return UserHandlers(store)


class BrokenStore:
    """Store whose every call fails like an unreachable database."""

    def _fail(self, *args):
        raise StorageError("Failed to reach database")

    create_user = list_users = get_user = update_user = delete_user = _fail


class TestParseUserId:
    """Tests for {id} segment parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("1", 1),
        ("42", 42),
        ("0", 0),
        ("-3", -3),
        ("007", 7),
        (str(MAX_ID), MAX_ID),
        (str(MIN_ID), MIN_ID),
    ])
    def test_valid(self, raw, expected):
        assert parse_user_id(raw) == expected

    @pytest.mark.parametrize("raw", [
        "abc", "1.5", "+1", " 1", "1 ", "", "-", "1e3", "٣",
        str(MAX_ID + 1), str(MIN_ID - 1), "99999999999999999999",
    ])
    def test_invalid(self, raw):
        with pytest.raises(InvalidId):
            parse_user_id(raw)


class TestParseUserBody:
    """Tests for JSON body validation."""

    def test_valid(self):
        request = make_request("POST", "/users", {"name": "Ada", "email": "ada@x.com"})

        assert parse_user_body(request) == ("Ada", "ada@x.com")

    def test_extra_fields_ignored(self):
        request = make_request(
            "POST", "/users", {"name": "Ada", "email": "ada@x.com", "id": 99}
        )

        assert parse_user_body(request) == ("Ada", "ada@x.com")

    @pytest.mark.parametrize("body,message", [
        (None, "Request body is required"),
        (b"{not json", "Invalid JSON body"),
        ([1, 2], "Request body must be a JSON object"),
        ("just a string", "Request body must be a JSON object"),
        ({"email": "ada@x.com"}, "Missing field: name"),
        ({"name": "Ada"}, "Missing field: email"),
        ({"name": None, "email": "ada@x.com"}, "Missing field: name"),
        ({"name": 5, "email": "ada@x.com"}, "Field must be a string: name"),
        ({"name": "Ada", "email": ["a"]}, "Field must be a string: email"),
        ({"name": "", "email": "ada@x.com"}, "Field must not be empty: name"),
        ({"name": "Ada", "email": ""}, "Field must not be empty: email"),
    ])
    def test_invalid(self, body, message):
        with pytest.raises(InvalidBody) as exc_info:
            parse_user_body(make_request("POST", "/users", body))

        assert exc_info.value.message.startswith(message)


class TestUserHandlers:
    """Tests for the CRUD handlers against a real store."""

    def test_register_order(self, handlers):
        router = Router()
        handlers.register(router)

        assert [(r.method, r.path) for r in router.routes()] == [
            ("POST", "/users"),
            ("GET", "/users"),
            ("GET", "/users/{id}"),
            ("PUT", "/users/{id}"),
            ("DELETE", "/users/{id}"),
        ]

    def test_create(self, handlers):
        response = handlers.create_user(
            make_request("POST", "/users", {"name": "Ada", "email": "ada@x.com"})
        )

        assert response.status == HTTPStatus.OK
        user = body_of(response)
        assert isinstance(user["id"], int)
        assert user["name"] == "Ada"
        assert user["email"] == "ada@x.com"

    def test_create_invalid_body(self, handlers, store):
        response = handlers.create_user(make_request("POST", "/users", {"name": ""}))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert "error" in body_of(response)
        assert store.list_users() == []

    def test_list(self, handlers, store):
        ada = store.create_user("Ada", "ada@x.com")
        bob = store.create_user("Bob", "bob@x.com")

        response = handlers.list_users(make_request("GET", "/users"))

        assert response.status == HTTPStatus.OK
        ids = {user["id"] for user in body_of(response)}
        assert ids == {ada.id, bob.id}

    def test_list_empty(self, handlers):
        response = handlers.list_users(make_request("GET", "/users"))

        assert response.body == b"[]"

    def test_get(self, handlers, store):
        ada = store.create_user("Ada", "ada@x.com")

        response = handlers.get_user(make_request("GET", f"/users/{ada.id}", user_id=ada.id))

        assert body_of(response) == ada.to_dict()

    def test_get_missing(self, handlers):
        response = handlers.get_user(make_request("GET", "/users/999", user_id=999))

        assert response.status == HTTPStatus.NOT_FOUND
        assert body_of(response) == {"error": "User 999 not found"}

    def test_get_invalid_id(self, handlers):
        response = handlers.get_user(make_request("GET", "/users/abc", user_id="abc"))

        assert response.status == HTTPStatus.BAD_REQUEST

    def test_update(self, handlers, store):
        ada = store.create_user("Ada", "ada@x.com")

        response = handlers.update_user(make_request(
            "PUT", f"/users/{ada.id}", {"name": "Ada L", "email": "ada@y.com"}, user_id=ada.id
        ))

        assert response.status == HTTPStatus.OK
        assert body_of(response) == {"id": ada.id, "name": "Ada L", "email": "ada@y.com"}
        assert store.get_user(ada.id).name == "Ada L"

    def test_update_missing(self, handlers):
        response = handlers.update_user(make_request(
            "PUT", "/users/999", {"name": "Ada", "email": "ada@x.com"}, user_id=999
        ))

        assert response.status == HTTPStatus.NOT_FOUND

    def test_update_invalid_id_checked_before_body(self, handlers):
        response = handlers.update_user(
            make_request("PUT", "/users/abc", b"garbage", user_id="abc")
        )

        assert response.status == HTTPStatus.BAD_REQUEST
        assert "id" in body_of(response)["error"]

    def test_update_empty_field(self, handlers, store):
        ada = store.create_user("Ada", "ada@x.com")

        response = handlers.update_user(make_request(
            "PUT", f"/users/{ada.id}", {"name": "", "email": "ada@x.com"}, user_id=ada.id
        ))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert store.get_user(ada.id) == ada

    def test_delete(self, handlers, store):
        ada = store.create_user("Ada", "ada@x.com")

        response = handlers.delete_user(
            make_request("DELETE", f"/users/{ada.id}", user_id=ada.id)
        )

        assert response.status == HTTPStatus.OK
        assert body_of(response) == {"message": f"User {ada.id} deleted"}
        assert store.list_users() == []

    def test_delete_missing(self, handlers):
        response = handlers.delete_user(make_request("DELETE", "/users/999", user_id=999))

        assert response.status == HTTPStatus.NOT_FOUND


class TestStorageFailures:
    """Storage errors become a generic 500."""

    @pytest.mark.parametrize("method_name,request_args", [
        ("create_user", ("POST", "/users", {"name": "Ada", "email": "ada@x.com"})),
        ("list_users", ("GET", "/users")),
    ])
    def test_storage_error_is_500(self, method_name, request_args):
        handlers = UserHandlers(BrokenStore())

        response = getattr(handlers, method_name)(make_request(*request_args))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert body_of(response) == {"error": "Failed to reach database"}

    def test_storage_error_logged(self, caplog):
        handlers = UserHandlers(BrokenStore())

        with caplog.at_level("WARNING", logger="usersvc.handlers.users"):
            handlers.get_user(make_request("GET", "/users/1", user_id=1))

        assert "get_user failed" in caplog.text
