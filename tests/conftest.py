"""
Pytest configuration and fixtures.
"""

import json
import socket
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from usersvc.config import ServerConfig
from usersvc.server import HTTPServer
from usersvc.storage import UserStore, create_schema


# =============================================================================
# RAW REQUEST FIXTURES
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """Sample GET request bytes."""
    return (
        b"GET /users/1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample POST request with a JSON body."""
    body = b'{"name":"Ada","email":"ada@x.com"}'
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        b"Content-Length: " + str(len(body)).encode() + b"\r\n"
        b"\r\n" + body
    )


# =============================================================================
# STORAGE FIXTURES
# =============================================================================

@pytest.fixture
def database_url(tmp_path) -> str:
    """A fresh SQLite file per test."""
    return f"sqlite:///{tmp_path / 'users.db'}"


@pytest.fixture
def store(database_url):
    """A UserStore with the users table created."""
    user_store = UserStore.from_url(database_url)
    create_schema(user_store.engine)
    yield user_store
    user_store.close()


# =============================================================================
# LIVE SERVER FIXTURES
# =============================================================================

@dataclass
class Reply:
    """A response read back off the wire."""

    status: int
    reason: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


class ClientSocket:
    """
    A client socket plus the bytes received past the last reply.

    One recv() can return the end of one response and the start of the
    next; read_reply() keeps that surplus here for the following call.
    """

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.pending = b""

    def sendall(self, data: bytes) -> None:
        self.sock.sendall(data)

    def recv(self, size: int) -> bytes:
        if self.pending:
            data, self.pending = self.pending[:size], self.pending[size:]
            return data
        return self.sock.recv(size)

    def close(self) -> None:
        self.sock.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def read_reply(conn: ClientSocket) -> Optional[Reply]:
    """
    Read exactly one response from a connection.

    Returns None if the server closed the connection before sending anything.
    """
    data = conn.recv(4096)
    while b"\r\n\r\n" not in data:
        chunk = conn.recv(4096)
        if not chunk:
            if data:
                raise AssertionError(f"Connection closed mid-response: {data!r}")
            return None
        data += chunk

    head, _, rest = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    _, status, reason = lines[0].split(" ", 2)

    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()

    length = int(headers.get("content-length", "0"))
    while len(rest) < length:
        chunk = conn.recv(4096)
        if not chunk:
            raise AssertionError("Connection closed mid-body")
        rest += chunk

    # Anything past this body belongs to the next response
    conn.pending = rest[length:]
    return Reply(status=int(status), reason=reason, headers=headers, body=rest[:length])


def build_request(
    method: str,
    path: str,
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    close: bool = False,
) -> bytes:
    """Serialize a request. Dicts and lists are sent as JSON."""
    if body is None:
        payload = b""
    elif isinstance(body, bytes):
        payload = body
    elif isinstance(body, str):
        payload = body.encode("utf-8")
    else:
        payload = json.dumps(body).encode("utf-8")

    lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    if payload:
        lines.append("Content-Type: application/json")
        lines.append(f"Content-Length: {len(payload)}")
    if close:
        lines.append("Connection: close")

    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8") + payload


class Client:
    """
    Minimal raw-socket HTTP client for the live server.

        reply = client.request("POST", "/users", {"name": "Ada", "email": "a@x"})
        assert reply.status == 200
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port

    def connect(self) -> ClientSocket:
        sock = socket.create_connection((self.host, self.port), timeout=5)
        return ClientSocket(sock)

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Reply:
        """Send one request on a fresh connection with Connection: close."""
        raw = build_request(method, path, body, headers, close=True)
        with self.connect() as sock:
            sock.sendall(raw)
            reply = read_reply(sock)
        assert reply is not None, "Server closed the connection without replying"
        return reply

    # Available on the fixture for tests that drive a socket by hand
    build_request = staticmethod(build_request)
    read_reply = staticmethod(read_reply)

    def send_raw(self, raw: bytes) -> bytes:
        """Send arbitrary bytes and return everything until the server closes."""
        with self.connect() as sock:
            sock.sendall(raw)
            received = b""
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    return received
                received += chunk


@pytest.fixture
def server_config(database_url) -> ServerConfig:
    """Configuration for a test server on an ephemeral port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        database_url=database_url,
        log_level="WARNING",
    )


@pytest.fixture
def live_server(server_config, store):
    """A running HTTPServer in a background thread."""
    server = HTTPServer(server_config, store)
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    if not server.wait_until_ready(timeout=5):
        raise RuntimeError("Test server failed to start")

    yield server

    server.shutdown()
    thread.join(timeout=10)


@pytest.fixture
def client(live_server) -> Client:
    """Client bound to the live server's address."""
    host, port = live_server.address
    return Client(host, port)


@pytest.fixture
def client_for():
    """Factory for clients of servers started inside a test."""
    def factory(server: HTTPServer) -> Client:
        host, port = server.address
        return Client(host, port)
    return factory
