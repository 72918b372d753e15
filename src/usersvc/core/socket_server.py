"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket and the accept loop. Every accepted client socket
is wrapped in a Connection and handed to a callback (HTTPServer submits it
to the worker pool). The accept loop never processes requests itself.

    ┌───────────────────────┐
    │   Listening Socket    │ ◄── bound once at startup (0.0.0.0:8080)
    └───────────┬───────────┘
                │ accept()
        ┌───────┴────────┬────────────────┐
        ▼                ▼                ▼
    Connection       Connection       Connection    ◄── one per client,
    (worker 1)       (worker 2)       (worker 3)        served by a worker

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR   Restart without waiting for TIME_WAIT sockets to expire.
SO_REUSEPORT   Several processes may bind the same port (not on Windows).
TCP_NODELAY    Responses are small; send them without Nagle buffering.

The listening socket has a 1 second timeout so the accept loop wakes up
regularly to notice shutdown().

=============================================================================
SHUTDOWN
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop) call shutdown() when the server
runs on the main thread. Python only delivers signals to the main thread,
so a server started from a background thread (tests) skips signal setup
and is stopped by calling shutdown() directly.

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    TCP listener with an interruptible accept loop.

    Usage:
        def on_connection(conn: Connection):
            pool.submit(serve, conn)

        server = SocketServer(config)
        server.start(on_connection)   # Blocks until shutdown()

    Once listening, `address` holds the real bound address, so port 0
    (pick any free port) can be used and read back.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None

        self._ready_event = threading.Event()
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening, configured address before."""
        return self._bound_address or (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except (AttributeError, OSError):
            pass  # Not available on this platform

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # Poll interval of the accept loop
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        """Install SIGTERM/SIGINT handlers (main thread only)."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop.

        BLOCKS until shutdown() is called.

        Raises:
            OSError: If the address cannot be bound (port in use, no
                     permission for ports < 1024).
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        host, port = self._bound_address
        logger.info(f"Server listening on {host}:{port}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                # Listening socket closed underneath us: shutting down
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop accepting connections. Safe to call more than once."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError as e:
                logger.debug(f"Error closing listening socket: {e}")
            self._socket = None

        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._shutdown_event.wait(timeout)
