"""
pytest configuration and fixtures.
"""

import json
import threading
from pathlib import Path
from typing import Dict, Generator, Optional, Tuple

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bookstore import HTTPServer, ServerConfig, create_app
from bookstore.db import Database
from bookstore.http import HTTPResponse
from bookstore.http.request import parse_request

BOUNDARY = "----BookstoreTestBoundary7MA4YWxk"

PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\r\n--not-a-boundary\r\n\x00\xff"
)


def encode_multipart(
    fields: Optional[Dict[str, str]] = None,
    files: Optional[Dict[str, Tuple[str, bytes, str]]] = None,
    boundary: str = BOUNDARY,
) -> Tuple[bytes, str]:
    """Build a multipart/form-data body. Returns (body, content_type)."""
    delimiter = b"--" + boundary.encode()
    chunks = []
    for name, value in (fields or {}).items():
        chunks.append(
            delimiter + b"\r\n"
            + f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
            + value.encode("utf-8") + b"\r\n"
        )
    for name, (filename, payload, content_type) in (files or {}).items():
        chunks.append(
            delimiter + b"\r\n"
            + f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'.encode()
            + f"Content-Type: {content_type}\r\n\r\n".encode()
            + payload + b"\r\n"
        )
    body = b"".join(chunks) + delimiter + b"--\r\n"
    return body, f"multipart/form-data; boundary={boundary}"


def build_raw_request(method: str, path: str, headers: Optional[Dict[str, str]] = None,
                      body: bytes = b"") -> bytes:
    """Serialize a request the way a client would put it on the wire."""
    lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    if body or method in ("POST", "PUT", "PATCH"):
        lines.append(f"Content-Length: {len(body)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body


class AppClient:
    """
    Drives an Application in-process, through the real request parser.

    Keeps the session cookie between calls like a browser would.
    """

    def __init__(self, app):
        self.app = app
        self.cookies: Dict[str, str] = {}

    def request(self, method: str, path: str, json_body=None, form=None, files=None,
                body: bytes = b"", headers: Optional[Dict[str, str]] = None) -> HTTPResponse:
        headers = dict(headers or {})
        if json_body is not None:
            body = json.dumps(json_body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        elif form is not None or files is not None:
            body, headers["Content-Type"] = encode_multipart(form, files)
        if self.cookies and "Cookie" not in headers:
            headers["Cookie"] = "; ".join(f"{k}={v}" for k, v in self.cookies.items())

        raw = build_raw_request(method, path, headers, body)
        response = self.app(parse_request(raw, ("127.0.0.1", 50000)))

        set_cookie = response.headers.get("Set-Cookie")
        if set_cookie:
            name, _, rest = set_cookie.partition("=")
            value = rest.split(";")[0]
            if value:
                self.cookies[name] = value
            else:
                self.cookies.pop(name, None)
        return response

    def get(self, path: str, **kwargs) -> HTTPResponse:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> HTTPResponse:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs) -> HTTPResponse:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs) -> HTTPResponse:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs) -> HTTPResponse:
        return self.request("DELETE", path, **kwargs)

    def register(self, name: str = "Ada", email: str = "ada@example.com",
                 password: str = "secret") -> HTTPResponse:
        return self.post("/api/users", form={"name": name, "email": email, "password": password})

    def login(self, email: str = "ada@example.com", password: str = "secret") -> HTTPResponse:
        return self.post("/api/login", json_body={"email": email, "password": password})


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/books?limit=5&q=dune HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Cookie: theme=dark; sessionId=abc123==\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"book_id": 3, "quantity": 2}'
    return (
        b"POST /api/cart HTTP/1.1\r\n"
        b"Host: localhost:3000\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def multipart():
    """The encode_multipart helper."""
    return encode_multipart


@pytest.fixture
def png_bytes() -> bytes:
    """Binary payload with CRLFs, dashes, NUL and 0xFF bytes."""
    return PNG_BYTES


@pytest.fixture
def raw_request():
    """The build_raw_request helper."""
    return build_raw_request


@pytest.fixture
def site_dirs(tmp_path: Path) -> Dict[str, Path]:
    """A throwaway public/ and views/ tree."""
    public = tmp_path / "public"
    views = tmp_path / "views"
    (public / "css").mkdir(parents=True)
    (public / "js").mkdir()
    (public / "uploads").mkdir()
    views.mkdir()

    (public / "css" / "style.css").write_text("body { color: #333; }\n")
    (public / "js" / "app.js").write_text("console.log('bookstore');\n")
    for page in ("index", "books", "add_book", "cart", "wishlist", "register", "login", "profile"):
        (views / f"{page}.html").write_text(f"<!DOCTYPE html><title>{page}</title>\n")
    (tmp_path / "secret.txt").write_text("do not serve")

    return {"root": tmp_path, "public": public, "views": views, "uploads": public / "uploads"}


@pytest.fixture
def config(site_dirs: Dict[str, Path]) -> ServerConfig:
    """Test configuration: free port, in-memory store, cheap password hashing."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        public_dir=str(site_dirs["public"]),
        views_dir=str(site_dirs["views"]),
        database_path=":memory:",
        password_iterations=1000,
        log_level="WARNING",
    )


@pytest.fixture
def db() -> Generator[Database, None, None]:
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def app(config: ServerConfig):
    application = create_app(config)
    yield application
    application.db.close()


@pytest.fixture
def client(app) -> AppClient:
    return AppClient(app)


@pytest.fixture
def new_client(app):
    """Factory for extra clients (other users) sharing the same app."""
    return lambda: AppClient(app)


@pytest.fixture
def logged_in(client: AppClient) -> AppClient:
    """A client with a registered user and a live session."""
    assert client.register().status == 201
    assert client.login().status == 200
    return client


@pytest.fixture
def live_server(config: ServerConfig) -> Generator[HTTPServer, None, None]:
    """An HTTPServer on a free port, running on a background thread."""
    server = HTTPServer(config)
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    if not server.wait_until_ready(5.0):
        raise RuntimeError("Server failed to start")

    yield server

    server.stop()
    thread.join(timeout=10.0)
    server.app.db.close()
