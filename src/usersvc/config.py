"""
=============================================================================
SERVICE CONFIGURATION
=============================================================================

Centralized configuration for the user service.

The configuration is built ONCE at startup and handed to the components
that need it (HTTPServer, UserStore). Nothing reads the environment after
that point.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m usersvc --port 3000                              │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── PORT=3000 DATABASE_URL=... python -m usersvc               │
    │                                                                      │
    │   3. .env file (loaded into the environment by the CLI)             │
    │                                                                      │
    │   4. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from . import __version__


@dataclass
class ServerConfig:
    """
    Configuration for the user service.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - keep_alive, keep_alive_timeout, max_request_size

    THREADING SETTINGS
    - min_workers, max_workers, queue_size

    DATABASE
    - database_url, db_pool_size

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (containers)
    """

    port: int = 8080
    """Port to listen on. 0 lets the OS pick a free one (tests)."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """Bytes requested per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Read timeout in seconds while waiting for a request.
    None = blocking forever; not allowed, see validate().
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow several requests on one TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle time allowed between requests on a kept-alive connection."""

    max_request_size: int = 1024 * 1024  # 1 MB
    """Upper bound for the header block and for the body, in bytes."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100

    # ─────────────────────────────────────────────────────────────────────
    # DATABASE
    # ─────────────────────────────────────────────────────────────────────

    database_url: str = "sqlite:///users.db"
    """
    SQLAlchemy URL of the store.
    - postgresql+psycopg://user:pass@db:5432/users
    - sqlite:///users.db
    """

    db_pool_size: int = 5
    """Connections kept open in the SQLAlchemy pool."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """'text' (Apache style) or 'json' access log lines."""

    server_name: str = f"usersvc/{__version__}"

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        DATABASE_URL    Store connection string (REQUIRED)
        PORT            Listen port (falls back to HTTP_PORT, then 8080)
        HTTP_HOST       Bind address (default: 0.0.0.0)
        HTTP_WORKERS    Max worker threads (default: 16)
        HTTP_TIMEOUT    Request read timeout in seconds (default: 30)
        LOG_LEVEL       Logging level (default: INFO)
        LOG_FORMAT      Access log format, text or json (default: text)

        =====================================================================

        Keyword overrides (command-line values) replace the environment
        values of the same field; None means "not given".

        Raises:
            ValueError: If DATABASE_URL is missing or a number is malformed.
        """
        overrides = {k: v for k, v in overrides.items() if v is not None}

        database_url = overrides.pop("database_url", None) or os.getenv("DATABASE_URL")
        if not database_url:
            raise ValueError("DATABASE_URL must be set in environment")

        port = os.getenv("PORT") or os.getenv("HTTP_PORT") or "8080"
        workers = int(os.getenv("HTTP_WORKERS", "16"))

        config = cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(port),
            min_workers=min(4, workers),
            max_workers=workers,
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            database_url=database_url,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )

        for name, value in overrides.items():
            if not hasattr(config, name):
                raise ValueError(f"Unknown configuration field: {name}")
            setattr(config, name, value)
        return config

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by HTTPServer at construction so bad values fail at startup,
        not on the first request.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        # Reads on client sockets must always be bounded
        if self.timeout is None or self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format}")

        if not self.database_url:
            raise ValueError("database_url must not be empty")
