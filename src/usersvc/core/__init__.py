"""
=============================================================================
CORE NETWORKING
=============================================================================

    SocketServer   accept loop on its own thread, never runs handlers
         │
         ▼
    ThreadPool     one task per accepted connection, bounded queue
         │
         ▼
    Connection     buffered reads through RequestParser, timeouts, close

Requests on one connection are handled strictly one after another by the
same worker. Different connections run in parallel.

=============================================================================
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",     # TCP listener and accept loop
    "Connection",       # Client socket wrapper
    "ConnectionState",  # Connection lifecycle states
    "ThreadPool",       # Worker threads
]
