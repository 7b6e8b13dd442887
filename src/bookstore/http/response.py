"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Every handler returns an HTTPResponse. The storefront produces three shapes:

    ┌──────────────────────┬───────────────────────────────────────────────┐
    │  JSON document       │  API results and errors                       │
    │                      │  Content-Type: application/json               │
    │                      │  {"message": "Book not found"}                │
    ├──────────────────────┼───────────────────────────────────────────────┤
    │  Raw file bytes      │  Views, CSS/JS bundles, uploaded images       │
    │                      │  Content-Type from the extension table        │
    ├──────────────────────┼───────────────────────────────────────────────┤
    │  Plain text          │  "404 - Not Found", "File not found"          │
    └──────────────────────┴───────────────────────────────────────────────┘

Serialized form:

    HTTP/1.1 200 OK\\r\\n
    Content-Type: application/json\\r\\n
    Set-Cookie: sessionId=Qm9v...; HttpOnly; Path=/\\r\\n
    Content-Length: 61\\r\\n                 ← always computed
    Date: Sat, 17 Oct 2026 12:00:00 GMT\\r\\n
    Server: Bookstore/1.0\\r\\n
    \\r\\n
    {"message": "Login successful", "user": {...}}

=============================================================================
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from .status_codes import HTTPStatus

DEFAULT_SERVER_NAME = "Bookstore/1.0"


@dataclass
class HTTPResponse:
    """A response ready to be serialized onto the socket."""

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def json_body(self) -> Any:
        """Decode a JSON body back into Python (used by tests and logging)."""
        return json.loads(self.body.decode("utf-8"))

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize status line, headers and body.

        Content-Length is always set from the actual body so keep-alive
        clients can find the end of the message. Date and Server are added
        when the handler did not set them.
        """
        response_headers = dict(self.headers)
        response_headers["Content-Length"] = str(len(self.body))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in response_headers.items())
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("latin-1") + self.body


class ResponseBuilder:
    """
    Fluent construction of HTTPResponse objects.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .cookie("sessionId", token)
            .json({"message": "Login successful"})
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        return self.content_type("text/plain").body(text)

    def json(self, data: Any) -> "ResponseBuilder":
        """JSON body; `default=str` covers timestamps coming out of sqlite."""
        return self.content_type("application/json").body(json.dumps(data, default=str))

    def cookie(
        self,
        name: str,
        value: str,
        http_only: bool = True,
        path: str = "/",
        max_age: Optional[int] = None,
    ) -> "ResponseBuilder":
        """
        Set a cookie.

            .cookie("sessionId", "abc")
                → Set-Cookie: sessionId=abc; HttpOnly; Path=/
            .cookie("sessionId", "", max_age=0)
                → Set-Cookie: sessionId=; HttpOnly; Path=/; Max-Age=0
        """
        parts = [f"{name}={value}"]
        if http_only:
            parts.append("HttpOnly")
        if path:
            parts.append(f"Path={path}")
        if max_age is not None:
            parts.append(f"Max-Age={max_age}")
        return self.header("Set-Cookie", "; ".join(parts))

    def build(self) -> HTTPResponse:
        return HTTPResponse(status=self._status, headers=dict(self._headers), body=self._body)


def format_http_date(dt: datetime) -> str:
    """RFC 7231 date: "Sat, 17 Oct 2026 12:00:00 GMT"."""
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# SHORTCUTS
# =============================================================================

def json_response(data: Any, status: Union[HTTPStatus, int] = HTTPStatus.OK) -> HTTPResponse:
    return ResponseBuilder().status(status).json(data).build()


def ok(data: Any) -> HTTPResponse:
    return json_response(data, HTTPStatus.OK)


def created(data: Any) -> HTTPResponse:
    return json_response(data, HTTPStatus.CREATED)


def message(text: str, status: Union[HTTPStatus, int] = HTTPStatus.OK) -> HTTPResponse:
    """`{"message": text}` with the given status; the shape of every error."""
    return json_response({"message": text}, status)


def text_response(text: str, status: Union[HTTPStatus, int] = HTTPStatus.OK) -> HTTPResponse:
    return ResponseBuilder().status(status).text(text).build()


def not_found() -> HTTPResponse:
    """The fixed answer for a request no route matches."""
    return text_response("404 - Not Found", HTTPStatus.NOT_FOUND)


def internal_error() -> HTTPResponse:
    return message("Server error", HTTPStatus.INTERNAL_SERVER_ERROR)
