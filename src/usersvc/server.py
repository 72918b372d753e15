"""
=============================================================================
HTTP SERVER
=============================================================================

Wires the pieces together and runs the per-connection loop.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       REQUEST LIFECYCLE                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer.accept()                         (accept thread)      │
    │        │                                                             │
    │        ▼  ThreadPool.submit()   queue full ──► 503, close async      │
    │   _process_connection(conn)                     (worker thread)      │
    │        │                                                             │
    │        ├──► conn.read_request()   MalformedRequest ──► 400, close    │
    │        │                          other exception ──► 500, close     │
    │        │                          None ──► close                     │
    │        ├──► LoggingMiddleware                                        │
    │        │       └──► _dispatch: Router ──► UserHandlers ──► UserStore │
    │        │                       RouteNotFound ──► 404                 │
    │        │            unexpected exception ──► 500                     │
    │        ├──► conn.send_response()  failed ──► close                   │
    │        │                                                             │
    │        └──► keep-alive? loop : close                                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .errors import MalformedRequest, ServiceError
from .handlers import UserHandlers
from .http import (
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    ResponseBuilder,
    Router,
    error_response,
)
from .middleware import LoggingMiddleware, Middleware, MiddlewarePipeline
from .storage import UserStore


logger = logging.getLogger(__name__)


def configure_logging(log_level: str) -> None:
    """
    Configure the root logger and the usersvc logger level.

    basicConfig is a no-op if the application already installed handlers.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("usersvc").setLevel(level)


class HTTPServer:
    """
    The user service.

        config = ServerConfig(port=8080, database_url="sqlite:///users.db")
        server = HTTPServer(config)
        server.run()          # Blocks until SIGINT/SIGTERM or shutdown()

    A store can be passed in (tests share one with their fixtures);
    otherwise one is built from config.database_url and closed on shutdown.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        store: Optional[UserStore] = None
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._owns_store = store is None
        self.store = store or UserStore.from_url(
            self.config.database_url, pool_size=self.config.db_pool_size
        )

        self._router = Router()
        UserHandlers(self.store).register(self._router)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware inside the access logger. Call before run()."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """Serve until shutdown() is called or SIGINT/SIGTERM arrives."""
        self._running = True
        self._setup_logging()

        self._handler = self._middleware.wrap(self._dispatch)
        self._thread_pool.start()

        logger.info(
            f"Starting {self.config.server_name} on {self.config.host}:{self.config.port} "
            f"({self.config.min_workers}-{self.config.max_workers} workers)"
        )
        for route in self._router.routes():
            logger.info(f"  {route.method:6} {route.path}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is bound. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def shutdown(self):
        """Ask a running server to stop. Callable from any thread."""
        self._socket_server.shutdown()

    def _setup_logging(self):
        configure_logging(self.config.log_level)

    def _shutdown(self):
        """
        Graceful shutdown.

        The accept loop has already stopped. Connections being served finish
        their current request, then workers drain the queue and exit.
        """
        logger.info("Shutting down server...")
        self._running = False

        self._thread_pool.shutdown(
            timeout=self.config.timeout + self.config.keep_alive_timeout
        )

        if self._owns_store:
            self.store.close()

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to the pool (runs on the accept thread)."""
        if not self._thread_pool.submit(self._process_connection, args=(conn,)):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            # close() drains for up to 0.5s; the accept loop must not wait on it
            threading.Thread(
                target=conn.close, name=f"usersvc-reject-{conn.id}", daemon=True
            ).start()

    def _process_connection(self, conn: Connection):
        """
        Serve one connection until it closes (runs on a worker thread).

        Requests on the connection are handled strictly in order: the next
        one is not read until the previous response has been written.
        """
        with conn:
            while self._running:
                try:
                    request = conn.read_request()
                except MalformedRequest as e:
                    logger.warning(f"[{conn.id}] Malformed request from {conn.client_ip}: {e.message}")
                    self._send_error(conn, HTTPStatus.BAD_REQUEST, e.message)
                    break
                except Exception as e:
                    logger.exception(f"[{conn.id}] Error reading request: {e}")
                    self._send_error(
                        conn, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error"
                    )
                    break

                if request is None:
                    break

                try:
                    response = self._handler(request)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    response = error_response(
                        HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error"
                    )

                keep_alive = self.config.keep_alive and request.is_keep_alive
                if keep_alive:
                    response.headers["Connection"] = "keep-alive"
                    response.headers["Keep-Alive"] = f"timeout={int(self.config.keep_alive_timeout)}"
                else:
                    response.headers["Connection"] = "close"

                if not conn.send_response(response.to_bytes(self.config.server_name)):
                    break

                if not keep_alive:
                    break

                conn.set_keep_alive()

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """Route the request; routing errors become their error response."""
        try:
            return self._router.handle(request)
        except ServiceError as e:
            return error_response(HTTPStatus(e.status_code), e.message)

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Best-effort error response for requests that never reached a handler."""
        response = (ResponseBuilder()
            .status(status)
            .json({"error": message})
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(self.config.server_name))


def create_app(
    config: Optional[ServerConfig] = None,
    store: Optional[UserStore] = None
) -> HTTPServer:
    """
    Build the service.

        app = create_app(ServerConfig.from_env())
        app.run()
    """
    return HTTPServer(config, store)
