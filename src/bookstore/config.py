"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every setting lives in one dataclass. Values come from, highest priority
first:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ 1. command-line flags        bookstore --port 8000                  │
    │ 2. environment variables     PORT=8000 bookstore                    │
    │ 3. defaults below                                                   │
    └─────────────────────────────────────────────────────────────────────┘

validate() runs once at startup so a bad value stops the process before
the socket is bound.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .passwords import DEFAULT_ITERATIONS

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the bookstore server.

    =========================================================================
    GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size, timeout
    HTTP        keep_alive, keep_alive_timeout, max_request_size
    THREADING   min_workers, max_workers, max_queue
    FILES       public_dir, views_dir, upload_dir
    STORAGE     database_path, session_cookie, password_iterations
    LOGGING     log_level, log_format

    =========================================================================
    """

    host: str = "127.0.0.1"
    port: int = 3000
    """0 lets the OS pick a free port (used by the test suite)."""

    backlog: int = 128
    buffer_size: int = 65536
    timeout: Optional[float] = 30.0

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024
    """Whole request, headers included. Covers cover images and avatars."""

    min_workers: int = 4
    max_workers: int = 16
    max_queue: int = 100

    public_dir: str = "public"
    views_dir: str = "views"
    upload_dir: Optional[str] = None
    """Defaults to <public_dir>/uploads so uploads are served at /uploads."""

    database_path: str = "bookstore.db"
    """sqlite file; ":memory:" keeps everything in the process."""

    session_cookie: str = "sessionId"
    password_iterations: int = DEFAULT_ITERATIONS

    log_level: str = "INFO"
    log_format: str = "text"
    server_name: str = "Bookstore/1.0"

    def __post_init__(self):
        if self.upload_dir is None:
            self.upload_dir = os.path.join(self.public_dir, "uploads")

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a config from environment variables.

            HOST                          bind address    (127.0.0.1)
            PORT                          port            (3000)
            BOOKSTORE_WORKERS             max workers     (16)
            BOOKSTORE_TIMEOUT             socket timeout  (30)
            BOOKSTORE_PUBLIC_DIR          css/js/uploads  (public)
            BOOKSTORE_VIEWS_DIR           HTML pages      (views)
            BOOKSTORE_UPLOAD_DIR          upload root     (<public>/uploads)
            DATABASE_PATH                 sqlite file     (bookstore.db)
            BOOKSTORE_MAX_REQUEST_SIZE    bytes           (10 MB)
            BOOKSTORE_LOG_LEVEL           (INFO)
            BOOKSTORE_LOG_FORMAT          text | json     (text)
        """
        defaults = cls()
        public_dir = os.getenv("BOOKSTORE_PUBLIC_DIR", defaults.public_dir)
        return cls(
            host=os.getenv("HOST", defaults.host),
            port=int(os.getenv("PORT", str(defaults.port))),
            max_workers=int(os.getenv("BOOKSTORE_WORKERS", str(defaults.max_workers))),
            timeout=float(os.getenv("BOOKSTORE_TIMEOUT", str(defaults.timeout))),
            public_dir=public_dir,
            views_dir=os.getenv("BOOKSTORE_VIEWS_DIR", defaults.views_dir),
            upload_dir=os.getenv("BOOKSTORE_UPLOAD_DIR"),
            database_path=os.getenv("DATABASE_PATH", defaults.database_path),
            max_request_size=int(
                os.getenv("BOOKSTORE_MAX_REQUEST_SIZE", str(defaults.max_request_size))
            ),
            log_level=os.getenv("BOOKSTORE_LOG_LEVEL", defaults.log_level).upper(),
            log_format=os.getenv("BOOKSTORE_LOG_FORMAT", defaults.log_format),
        )

    def validate(self) -> None:
        """Raise ValueError on the first invalid setting."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")
        if self.max_queue < 1:
            raise ValueError("max_queue must be >= 1")
        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")
        if self.password_iterations < 1:
            raise ValueError("password_iterations must be >= 1")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}")
        if self.log_format not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        if not self.session_cookie:
            raise ValueError("session_cookie must not be empty")
