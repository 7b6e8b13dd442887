"""
=============================================================================
BOOKSTORE SERVER
=============================================================================

create_app() wires the storefront together; HTTPServer puts it on a socket.

    ┌──────────────┐   ┌────────────┐   ┌──────────────────────────────────┐
    │ SocketServer │──►│ ThreadPool │──►│ worker: keep-alive loop          │
    └──────────────┘   └────────────┘   │   Connection.read_request()      │
                                        │   RequestParser.parse()          │
                                        │   Application(request)           │
                                        │     LoggingMiddleware            │
                                        │       Dispatcher ─► handler      │
                                        │   Connection.send_response()     │
                                        └──────────────────────────────────┘

Failures that happen before a request reaches the dispatcher are answered
here and the connection is closed:

    malformed request line/headers    400 / 405 / 413 / 505
    client too slow                   408
    every worker busy, queue full     503

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .db import Database
from .dispatcher import Dispatcher
from .handlers import (
    AccountHandler,
    BookHandler,
    CartHandler,
    PageHandler,
    WishlistHandler,
    register_static,
)
from .http import HTTPParseError, HTTPRequest, HTTPResponse, HTTPStatus, RequestParser, Router
from .http.response import message
from .middleware import LoggingMiddleware, MiddlewarePipeline, NextHandler
from .sessions import SessionStore
from .uploads import UploadStore

logger = logging.getLogger(__name__)


@dataclass
class Application:
    """The wired storefront. Calling it handles one parsed request."""

    config: ServerConfig
    db: Database
    sessions: SessionStore
    uploads: UploadStore
    router: Router
    dispatcher: Dispatcher
    handler: NextHandler

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.handler(request)


def create_app(config: Optional[ServerConfig] = None,
               database: Optional[Database] = None) -> Application:
    """
    Build the storefront from a config.

    Args:
        config: Settings; defaults to ServerConfig().
        database: Use this store instead of opening config.database_path.

    Example:
        app = create_app(ServerConfig(database_path=":memory:"))
        response = app(parse_request(raw))
    """
    config = config or ServerConfig()
    db = database or Database(config.database_path)
    sessions = SessionStore(cookie_name=config.session_cookie)
    uploads = UploadStore(config.upload_dir)

    router = Router()
    BookHandler(db, uploads).register(router)
    AccountHandler(db, sessions, uploads,
                   password_iterations=config.password_iterations).register(router)
    CartHandler(db).register(router)
    WishlistHandler(db).register(router)
    PageHandler(config.views_dir).register(router)
    register_static(router, config.public_dir, config.upload_dir)
    router.seal()

    dispatcher = Dispatcher(router, sessions)
    pipeline = MiddlewarePipeline()
    pipeline.add(LoggingMiddleware(log_format=config.log_format))

    return Application(
        config=config,
        db=db,
        sessions=sessions,
        uploads=uploads,
        router=router,
        dispatcher=dispatcher,
        handler=pipeline.wrap(dispatcher),
    )


class HTTPServer:
    """
    Serves an Application over HTTP/1.1.

        server = HTTPServer(ServerConfig(port=3000))
        server.run()                       # blocks until Ctrl+C

    From another thread (tests):

        threading.Thread(target=server.run, daemon=True).start()
        server.wait_until_ready(5)
        host, port = server.address
        ...
        server.stop()
    """

    def __init__(self, config: Optional[ServerConfig] = None,
                 app: Optional[Application] = None):
        self.config = config or (app.config if app else ServerConfig())
        self.config.validate()
        self.app = app or create_app(self.config)

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            max_queue=self.config.max_queue,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        """(host, port) actually bound; meaningful once ready."""
        return self._socket_server.bound_address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def run(self) -> None:
        """Start serving. Blocks until stop(), SIGINT or SIGTERM."""
        self._setup_logging()
        self._running = True
        self._thread_pool.start()
        logger.info(
            f"{self.config.server_name} starting with "
            f"{self.config.min_workers}-{self.config.max_workers} workers, "
            f"{len(self.app.router.routes())} routes"
        )
        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self) -> None:
        self._socket_server.shutdown()

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("bookstore").setLevel(level)

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._running = False
        stats = self._thread_pool.stats
        logger.info(f"Worker totals: {stats['completed']} completed, {stats['failed']} failed")
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    # ─────────────────────────────────────────────────────────────────────
    # Connection handling
    # ─────────────────────────────────────────────────────────────────────

    def _handle_connection(self, conn: Connection) -> None:
        """Called on the accept thread; hands the connection to a worker."""
        if not self._thread_pool.submit(self._process_connection, args=(conn,)):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """Keep-alive loop, runs on a worker thread."""
        try:
            while self._running:
                try:
                    raw = conn.read_request()
                except HTTPParseError as e:
                    self._send_error(conn, e.status_code, e.message)
                    break
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                if raw is None:
                    break

                try:
                    request = self._parser.parse(raw, conn.address)
                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Bad request: {e.message}")
                    self._send_error(conn, e.status_code, e.message)
                    break

                response = self.app(request)

                keep_alive = request.is_keep_alive and self.config.keep_alive
                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.set_header("Connection", "close")

                if not conn.send_response(response.to_bytes(self.config.server_name)):
                    break
                if not keep_alive:
                    break

        except Exception as e:
            logger.exception(f"[{conn.id}] Connection error: {e}")
        finally:
            conn.close()

    def _send_error(self, conn: Connection, status: int, text: str) -> None:
        response = message(text, status)
        response.set_header("Connection", "close")
        conn.send_response(response.to_bytes(self.config.server_name))
