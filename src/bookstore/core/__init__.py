"""
Transport layer: the TCP listener, per-client connections and the worker
pool that serves them.

    SocketServer ──accept──► Connection ──submit──► ThreadPool worker
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import ThreadPool, Worker, WorkerState

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "ThreadPool",
    "Worker",
    "WorkerState",
]
