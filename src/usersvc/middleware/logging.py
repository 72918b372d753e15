"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One log record per handled request on the "usersvc.access" logger.

    TEXT (default):
        127.0.0.1 - - [17/Oct/2026:12:00:00 +0000] "GET /users/1 HTTP/1.1" 200 41 0.84ms rid=a1b2c3d4

    JSON (for log aggregators):
        {"request_id": "a1b2c3d4", "method": "GET", "path": "/users/1",
         "version": "HTTP/1.1", "status": 200, "bytes": 41, ...}

    ┌──────────────────────────┬──────────────────────────────────────────┐
    │ Outcome                  │ Level                                    │
    ├──────────────────────────┼──────────────────────────────────────────┤
    │ 2xx / 4xx response       │ log_level (INFO by default)              │
    │ 5xx response             │ WARNING (storage failures surface here)  │
    │ exception from the chain │ ERROR, then re-raised                    │
    └──────────────────────────┴──────────────────────────────────────────┘

The request id is taken from an incoming X-Request-ID header when present,
otherwise generated, and is echoed on the response.

Request bodies are never logged: they carry names and email addresses.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import Middleware, NextHandler


# Namespaced so deployments can route access logs separately:
#   logging.getLogger("usersvc.access").addHandler(file_handler)
logger = logging.getLogger("usersvc.access")

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class AccessLogEntry:
    """What one request/response exchange looked like."""

    request_id: str
    client_ip: str
    method: str
    path: str
    version: str
    status: int
    bytes: int
    duration_ms: float
    user_agent: str
    timestamp: str

    @classmethod
    def from_exchange(
        cls,
        request: HTTPRequest,
        response: HTTPResponse,
        request_id: str,
        duration_ms: float,
    ) -> "AccessLogEntry":
        return cls(
            request_id=request_id,
            client_ip=request.client_address[0] or "-",
            method=request.method,
            path=request.path,
            version=request.version,
            status=int(response.status),
            bytes=len(response.body),
            duration_ms=round(duration_ms, 2),
            user_agent=request.user_agent or "-",
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def as_json(self) -> str:
        return json.dumps(asdict(self))

    def as_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path} {self.version}" {self.status} {self.bytes} '
            f'{self.duration_ms:.2f}ms rid={self.request_id}'
        )


class LoggingMiddleware(Middleware):
    """
    Access logger. Register it first so its timing covers every other layer.

        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Echo X-Request-ID on responses.
            log_level: Level for non-5xx records.
        """
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = request.get_header(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        started = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            logger.error(
                f"[{request_id}] {request.method} {request.path} raised "
                f"{type(e).__name__}: {e} after {self._elapsed_ms(started):.2f}ms"
            )
            raise

        entry = AccessLogEntry.from_exchange(
            request, response, request_id, self._elapsed_ms(started)
        )
        level = logging.WARNING if response.status.is_server_error else self.log_level
        logger.log(level, entry.as_json() if self.log_format == "json" else entry.as_text())

        if self.include_request_id:
            response.set_header(REQUEST_ID_HEADER, request_id)
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000
