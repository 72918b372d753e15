"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket: buffered request reading through a
per-connection RequestParser, bounded waits, response writing and an
orderly TCP close.

=============================================================================
READ TIMEOUTS
=============================================================================

Every recv() is bounded, so a silent client can never pin a worker:

    ┌──────────────────────────────┬──────────────────────────────────────┐
    │ Situation                    │ Outcome                              │
    ├──────────────────────────────┼──────────────────────────────────────┤
    │ Timeout, nothing received    │ None: close silently                 │
    │ (fresh or kept-alive conn)   │                                      │
    │ Timeout mid-request          │ MalformedRequest: 400, then close    │
    │ Peer closed, nothing pending │ None: close                          │
    │ Peer closed mid-request      │ None: nobody left to answer          │
    └──────────────────────────────┴──────────────────────────────────────┘

The first request gets `timeout` seconds, later requests on a kept-alive
connection get `keep_alive_timeout` seconds.

=============================================================================
CONNECTION STATES
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
              ▲                                                 │
              └─────────────────────────────────────────────────┘
    any state ──► CLOSING ──► CLOSED

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..errors import MalformedRequest
from ..http.request import HTTPRequest, RequestParser


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client (ip, port).
        id: Short random id, prefixed to log lines.
        state: Current ConnectionState.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _parser: RequestParser = field(init=False, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)
        self._parser = RequestParser(max_request_size=self.max_request_size)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[HTTPRequest]:
        """
        Read the next complete request.

        Bytes left over from a previous recv() are parsed first, so a
        request already sitting in the buffer is returned without touching
        the socket.

        Returns:
            The parsed request, or None when the connection should be closed
            without a response (peer gone, or idle timeout).

        Raises:
            MalformedRequest: Invalid bytes, or a timeout mid-request.
        """
        self.state = ConnectionState.READING
        self.socket.settimeout(
            self.keep_alive_timeout if self.requests_handled else self.timeout
        )

        while True:
            request = self._parser.next_request(self.address)
            if request is not None:
                self.requests_handled += 1
                self.state = ConnectionState.PROCESSING
                return request

            try:
                chunk = self._recv()
            except socket.timeout:
                if self._parser.has_partial_request:
                    raise MalformedRequest("Timed out reading request")
                logger.debug(f"[{self.id}] Idle timeout")
                return None

            if not chunk:
                if self._parser.has_partial_request:
                    logger.debug(f"[{self.id}] Peer closed mid-request")
                return None

            self._parser.feed(chunk)

    def _recv(self) -> bytes:
        """recv() that maps an abrupt disconnect to end-of-stream."""
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        self.last_activity = time.time()
        return data

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Write all bytes of a response.

        Returns:
            True if sent, False if the peer is gone (the caller closes).
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        self.last_activity = time.time()
        return True

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close with FIN first, then drain, then release the descriptor.

        Unread request bytes must be drained before close(), otherwise the
        kernel sends RST and the client may lose the last response.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # socket.timeout is an OSError

        try:
            self.socket.close()
        except OSError as e:
            logger.debug(f"[{self.id}] Error on close: {e}")

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
