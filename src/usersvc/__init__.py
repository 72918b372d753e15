"""
=============================================================================
USERSVC - User CRUD Service Over Raw HTTP/1.1
=============================================================================

A small network service exposing create/read/update/delete operations on a
single "user" resource, backed by a relational store. HTTP is spoken
directly over TCP sockets: no web framework sits between the socket and the
handlers.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       REQUEST PIPELINE                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer ──accept──► Connection ──bytes──► RequestParser       │
    │                                                       │              │
    │                                                       ▼              │
    │   Connection ◄──bytes── HTTPResponse ◄── UserHandlers ◄── Router     │
    │                                              │                       │
    │                                              ▼                       │
    │                                          UserStore ──SQL──► users    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ROUTES
=============================================================================

    POST   /users        create a user         {"name": ..., "email": ...}
    GET    /users        list all users
    GET    /users/{id}   fetch one user
    PUT    /users/{id}   replace name/email    {"name": ..., "email": ...}
    DELETE /users/{id}   remove a user

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    usersvc/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m usersvc)
    ├── server.py            # HTTPServer: connection loop orchestration
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Error taxonomy (MalformedRequest, NotFound...)
    ├── models.py            # User dataclass
    ├── core/                # Sockets, connections, worker threads
    ├── http/                # Request parser, router, response writer
    ├── middleware/          # Access logging
    ├── handlers/            # User resource handlers
    └── storage/             # SQLAlchemy schema and UserStore

=============================================================================
QUICK START
=============================================================================

    from usersvc import ServerConfig, create_app
    from usersvc.storage import UserStore, create_schema

    config = ServerConfig(port=8080, database_url="sqlite:///users.db")
    store = UserStore.from_url(config.database_url)
    create_schema(store.engine)

    create_app(config, store).run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer, create_app

__all__ = ["HTTPServer", "ServerConfig", "create_app", "__version__"]
