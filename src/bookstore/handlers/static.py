"""
=============================================================================
STATIC FILES AND VIEWS
=============================================================================

Two kinds of GET traffic never reach the JSON API:

    ┌──────────────────────────┬──────────────────────────────────────────┐
    │  URL                     │  Served from                             │
    ├──────────────────────────┼──────────────────────────────────────────┤
    │  /css/<file>             │  public/css/<file>                       │
    │  /js/<file>              │  public/js/<file>                        │
    │  /uploads/<sub>/<file>   │  upload root (public/uploads by default) │
    ├──────────────────────────┼──────────────────────────────────────────┤
    │  /                       │  views/index.html                        │
    │  /books, /add_book,      │  views/<page>.html                       │
    │  /cart, /wishlist,       │                                          │
    │  /register, /login,      │                                          │
    │  /profile                │                                          │
    └──────────────────────────┴──────────────────────────────────────────┘

Files go out byte for byte with a Content-Type from the extension table.
A missing file is a plain-text 404 "File not found".

Path traversal: the requested path is resolved (following ".." and
symlinks) and must still be inside the served root:

    full_path = (root_dir / user_input).resolve()
    full_path.relative_to(root_dir)      # ValueError if it escaped → 403

=============================================================================
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Union

from ..http.mime_types import get_content_type
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, format_http_date, text_response
from ..http.router import Router
from ..http.status_codes import HTTPStatus

logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Serves files below one directory.

        css = StaticFileHandler("public/css", url_prefix="/css")
        router.get("/css/*path")(css.handle)

    Responses carry an ETag built from mtime and size; a matching
    If-None-Match gets a 304 with no body.
    """

    def __init__(self, root_dir: Union[str, Path], url_prefix: str = "", cache_max_age: int = 3600):
        self.root_dir = Path(root_dir).resolve()
        self.url_prefix = url_prefix.rstrip("/")
        self.cache_max_age = cache_max_age

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        relative = request.path_params.get("path")
        if relative is None:
            relative = request.path[len(self.url_prefix):]
        return self.serve(relative, request)

    def serve(self, relative: str, request: HTTPRequest) -> HTTPResponse:
        full_path = (self.root_dir / relative.lstrip("/")).resolve()
        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {relative}")
            return text_response("Forbidden", HTTPStatus.FORBIDDEN)

        if not full_path.is_file():
            return text_response("File not found", HTTPStatus.NOT_FOUND)

        return self._serve_file(full_path, request)

    def _serve_file(self, path: Path, request: HTTPRequest) -> HTTPResponse:
        try:
            stat = path.stat()
            etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'

            if request.headers.get("if-none-match", "") == etag:
                return (ResponseBuilder()
                    .status(HTTPStatus.NOT_MODIFIED)
                    .header("ETag", etag)
                    .build())

            content = path.read_bytes()
        except OSError as e:
            logger.error(f"Error reading {path}: {e}")
            return text_response("File not found", HTTPStatus.NOT_FOUND)

        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(get_content_type(path))
            .header("ETag", etag)
            .header("Last-Modified", format_http_date(modified))
            .header("Cache-Control", f"public, max-age={self.cache_max_age}")
            .body(content)
            .build())


class PageHandler:
    """Maps the storefront's page URLs to HTML files in the views directory."""

    PAGES: Dict[str, str] = {
        "/": "index.html",
        "/books": "books.html",
        "/add_book": "add_book.html",
        "/cart": "cart.html",
        "/wishlist": "wishlist.html",
        "/register": "register.html",
        "/login": "login.html",
        "/profile": "profile.html",
    }

    def __init__(self, views_dir: Union[str, Path]):
        # HTML should always be revalidated, it links to versioned assets
        self.files = StaticFileHandler(views_dir, cache_max_age=0)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        page = self.PAGES.get(request.path.rstrip("/") or "/")
        if page is None:
            return text_response("File not found", HTTPStatus.NOT_FOUND)
        return self.files.serve(page, request)

    def register(self, router: Router) -> None:
        for path in self.PAGES:
            router.get(path)(self.handle)


def register_static(router: Router, public_dir: Union[str, Path], upload_dir: Union[str, Path]) -> None:
    """Mount /css, /js and /uploads."""
    public_dir = Path(public_dir)
    for prefix, root in (
        ("/uploads", Path(upload_dir)),
        ("/css", public_dir / "css"),
        ("/js", public_dir / "js"),
    ):
        handler = StaticFileHandler(root, url_prefix=prefix)
        router.get(f"{prefix}/*path")(handler.handle)
