"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes buffered by a Connection into an HTTPRequest, and gives
handlers typed access to the pieces they need: path ids, query values,
cookies, and the decoded body (JSON object or multipart form).

=============================================================================
WHAT A STOREFRONT REQUEST LOOKS LIKE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │  PUT /api/books/7?x=1 HTTP/1.1\r\n           ← request line         │
    │  Host: localhost:3000\r\n                                           │
    │  Cookie: theme=dark; sessionId=Qm9va3N0b3Jl\r\n  ← session token   │
    │  Content-Type: multipart/form-data; boundary=XyZ\r\n                │
    │  Content-Length: 5123\r\n                    ← exact body size      │
    │  \r\n                                                                │
    │  --XyZ\r\n ... (title, author, price, image) ... --XyZ--\r\n        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    request.path                 "/api/books/7"
    request.int_param("id")      7             (after routing)
    request.cookies              {"theme": "dark", "sessionId": "Qm9v..."}
    request.form()               MultipartForm(fields=..., files={"image": ...})

=============================================================================
BODY DECODING
=============================================================================

    Content-Type                         request.form()
    ───────────────────────────────────  ──────────────────────────────────
    multipart/form-data; boundary=...    MultipartParser → fields + files
    anything else (usually JSON)         json.loads → fields, no files

A JSON body must be an object. Empty, undecodable or non-object bodies are
a MalformedRequest (400).

=============================================================================
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from ..errors import MalformedRequest
from .multipart import MultipartForm, MultipartParser, parse_boundary

# Largest value an SQLite INTEGER column holds
MAX_INTEGER = 2 ** 63 - 1

_DECIMAL = re.compile(r"[0-9]+")


def parse_decimal(raw: str) -> Optional[int]:
    """ASCII digits within MAX_INTEGER, else None."""
    if not _DECIMAL.fullmatch(raw):
        return None
    number = int(raw)
    return number if number <= MAX_INTEGER else None


class HTTPParseError(MalformedRequest):
    """
    The bytes on the wire are not a usable HTTP/1.x request.

    Carries the status the server loop answers with before closing:

        400 Bad Request                 - broken request line or body
        405 Method Not Allowed          - method outside VALID_METHODS
        413 Payload Too Large           - body over max_request_size
        505 HTTP Version Not Supported  - not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message, status_code=status_code)


@dataclass
class HTTPRequest:
    """
    A parsed request.

    Attributes:
        method: Upper-case method ("GET", "POST", ...).
        path: Percent-decoded path without the query string.
        version: "HTTP/1.1" or "HTTP/1.0".
        headers: Header name (lowercase) → value.
        query_params: Query name → list of values.
        body: Raw body bytes, exactly Content-Length long.
        path_params: Filled in by the router (":id" → "7").
        client_address: (ip, port) of the peer.
        session: Set by the dispatcher on authenticated routes.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: Tuple[str, int] = ("", 0)
    session: Optional[Any] = field(default=None, repr=False)

    _form: Optional[MultipartForm] = field(default=None, repr=False)
    _cookies: Optional[Dict[str, str]] = field(default=None, repr=False)

    # =========================================================================
    # HEADERS
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Media type without parameters: "multipart/form-data"."""
        value = self.headers.get("content-type", "")
        return value.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def is_multipart(self) -> bool:
        return self.content_type == "multipart/form-data"

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 stays open unless "Connection: close";
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    @property
    def cookies(self) -> Dict[str, str]:
        """
        The Cookie header as a dict.

        Pairs are split on ";" and trimmed; the value is everything after
        the first "=", so base64 padding survives:

            "a=1; sessionId=abc=="  →  {"a": "1", "sessionId": "abc=="}
        """
        if self._cookies is None:
            self._cookies = parse_cookies(self.headers.get("cookie", ""))
        return self._cookies

    # =========================================================================
    # QUERY AND PATH PARAMETERS
    # =========================================================================

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def int_param(self, name: str) -> int:
        """
        A numeric path parameter.

        Raises:
            MalformedRequest: The segment is not a decimal integer.
        """
        raw = self.path_params.get(name, "")
        number = parse_decimal(raw)
        if number is None:
            raise MalformedRequest(f"Invalid {name}: {raw!r}")
        return number

    # =========================================================================
    # BODY
    # =========================================================================

    def json(self) -> Dict[str, Any]:
        """
        Decode the body as a JSON object.

        Raises:
            MalformedRequest: Empty body, bad JSON, or not an object.
        """
        if not self.body:
            raise MalformedRequest("Request body is empty")
        try:
            data = json.loads(self.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedRequest(f"Invalid JSON body: {e}")
        if not isinstance(data, dict):
            raise MalformedRequest("JSON body must be an object")
        return data

    def form(self) -> MultipartForm:
        """
        The decoded body as fields + files, whatever the encoding.

        Multipart bodies go through MultipartParser; anything else is read
        as a JSON object whose members become the fields (values keep their
        JSON types). Parsed once and cached.
        """
        if self._form is None:
            if self.is_multipart:
                boundary = parse_boundary(self.headers.get("content-type", ""))
                if not boundary:
                    raise MalformedRequest("Multipart request without a boundary")
                self._form = MultipartParser().parse(self.body, boundary)
            else:
                self._form = MultipartForm(fields=self.json())
        return self._form


def parse_cookies(header: str) -> Dict[str, str]:
    """Parse a Cookie header value into a dict (see HTTPRequest.cookies)."""
    cookies: Dict[str, str] = {}
    for pair in header.split(";"):
        pair = pair.strip()
        if not pair:
            continue
        name, _, value = pair.partition("=")
        cookies[name.strip()] = value.strip()
    return cookies


class RequestParser:
    """
    Parses complete request bytes into an HTTPRequest.

        raw bytes
           │
           ├─ size check ............ > max_request_size → 413
           ├─ split at \\r\\n\\r\\n .... missing → 400
           ├─ request line .......... bad → 400, method → 405, version → 505
           ├─ headers ............... lowercase names, repeats joined by ", "
           └─ body .................. exactly Content-Length bytes
    """

    VALID_METHODS = {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"}

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: Tuple[str, int] = ("", 0)) -> HTTPRequest:
        """
        Parse one buffered request.

        Raises:
            HTTPParseError: The request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header bytes are latin-1 on the wire; never touch the body here
        lines = data[:header_end].decode("latin-1").split("\r\n")
        body = data[header_end + 4:]

        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, Dict[str, List[str]], str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)
        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..")

        return method, path, query_params, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for line in lines:
            if not line:
                continue
            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue
            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value
        return headers


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> HTTPRequest:
    """One-shot helper around RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
