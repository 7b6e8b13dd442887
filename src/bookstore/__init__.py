"""
=============================================================================
BOOKSTORE - Storefront Backend on a From-Scratch HTTP/1.1 Server
=============================================================================

A small online bookstore: a book catalogue with cover images, user
accounts with profile photos, and a per-user cart and wishlist, served as
a JSON API next to a handful of static HTML pages.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          REQUEST PATH                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   socket ─► Connection ─► RequestParser ─► LoggingMiddleware        │
    │                                                 │                    │
    │                                                 ▼                    │
    │                         Router ◄─────────── Dispatcher               │
    │                           │                     │ session check      │
    │                           ▼                     ▼                    │
    │               Book / Account / Cart / Wishlist / Page handlers      │
    │                           │                                          │
    │            ┌──────────────┼──────────────────┐                       │
    │            ▼              ▼                  ▼                       │
    │        Database     SessionStore        UploadStore                  │
    │        (sqlite)     (in memory)       (public/uploads)              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    bookstore/
    ├── __main__.py          # CLI (python -m bookstore)
    ├── server.py            # create_app() and HTTPServer
    ├── config.py            # ServerConfig
    ├── dispatcher.py        # routing, auth gate, error → response
    ├── errors.py            # error kinds and their statuses
    ├── db.py                # sqlite store
    ├── sessions.py          # in-memory session store
    ├── uploads.py           # upload persistence
    ├── passwords.py         # PBKDF2 password hashing
    ├── core/                # sockets, connections, thread pool
    ├── http/                # request, multipart, response, router
    ├── middleware/          # pipeline and access log
    └── handlers/            # API endpoints and static files

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import Application, HTTPServer, create_app

__all__ = [
    "__version__",
    "ServerConfig",
    "Application",
    "HTTPServer",
    "create_app",
]
