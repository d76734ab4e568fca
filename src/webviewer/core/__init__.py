"""
=============================================================================
CORE NETWORKING COMPONENTS
=============================================================================

    SocketServer   Listening socket: bind, accept loop, close
    Connection     One client socket: read request, write response, close
    ThreadPool     Worker threads: one connection per worker at a time

    ┌────────────────┐   Connection   ┌──────────────┐   worker thread
    │  SocketServer  │ ─────────────► │  ThreadPool  │ ───────────────► WebViewerServer._process_connection
    └────────────────┘                └──────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
