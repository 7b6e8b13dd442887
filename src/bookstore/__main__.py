"""
=============================================================================
COMMAND LINE
=============================================================================

    bookstore                              # 127.0.0.1:3000, ./bookstore.db
    bookstore --port 8000 --host 0.0.0.0
    bookstore --db :memory: --log-level DEBUG
    python -m bookstore --public ./public --views ./views

Flags override the environment variables read by ServerConfig.from_env().

=============================================================================
"""

import argparse
import os
import sys

from . import __version__
from .config import ServerConfig
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookstore",
        description="Bookstore storefront server",
    )
    parser.add_argument("--host", "-H", help="Host to bind to (env HOST, default 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (env PORT, default 3000)")
    parser.add_argument("--workers", "-w", type=int,
                        help="Maximum worker threads (env BOOKSTORE_WORKERS)")
    parser.add_argument("--db", dest="database_path",
                        help="sqlite database file, or :memory: (env DATABASE_PATH)")
    parser.add_argument("--public", dest="public_dir",
                        help="Directory with css/, js/ and uploads/ (env BOOKSTORE_PUBLIC_DIR)")
    parser.add_argument("--views", dest="views_dir",
                        help="Directory with the HTML pages (env BOOKSTORE_VIEWS_DIR)")
    parser.add_argument("--uploads", dest="upload_dir",
                        help="Upload root (env BOOKSTORE_UPLOAD_DIR)")
    parser.add_argument("--log-level", "-l",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (env BOOKSTORE_LOG_LEVEL)")
    parser.add_argument("--log-format", choices=["text", "json"],
                        help="Access log format (env BOOKSTORE_LOG_FORMAT)")
    parser.add_argument("--version", "-v", action="version",
                        version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    config = ServerConfig.from_env()

    for name in ("host", "port", "database_path", "views_dir", "log_level", "log_format"):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)

    if args.public_dir is not None:
        config.public_dir = args.public_dir
        if args.upload_dir is None and os.getenv("BOOKSTORE_UPLOAD_DIR") is None:
            config.upload_dir = os.path.join(args.public_dir, "uploads")
    if args.upload_dir is not None:
        config.upload_dir = args.upload_dir
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)

    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    try:
        config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    HTTPServer(config).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
