"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this server actually answers with, plus the reason phrase
that goes on the status line.

    HTTP/1.1 201 Created
             ─── ───────
              │     │
              │     └── phrase (from _STATUS_PHRASES)
              └──────── code (HTTPStatus member)

Where each one comes from:

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  100   │ Interim reply to "Expect: 100-continue" (large uploads)   │
    │  200   │ Reads, updates, deletes, login, logout                    │
    │  201   │ Book / user / cart row / wishlist row created             │
    │  304   │ Static file unchanged (ETag match)                        │
    │  400   │ Bad JSON, bad multipart, bad id, duplicate email          │
    │  401   │ Gated route without a live session, wrong password        │
    │  403   │ Static path escaping its root                             │
    │  404   │ Unknown route, missing entity, missing file               │
    │  405   │ Unknown request method on the wire                        │
    │  408   │ Client too slow to send its request                       │
    │  413   │ Declared body larger than max_request_size                │
    │  500   │ Storage or disk failure, unexpected handler error         │
    │  503   │ Worker queue full                                         │
    │  505   │ Anything other than HTTP/1.0 or HTTP/1.1                  │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the storefront.

    IntEnum so members compare equal to plain ints:

        HTTPStatus.CREATED == 201   # True
    """

    CONTINUE = 100

    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    NOT_MODIFIED = 304

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    PAYLOAD_TOO_LARGE = 413
    UNSUPPORTED_MEDIA_TYPE = 415

    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line ("Not Found" for 404)."""
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.CONTINUE: "Continue",
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.CONFLICT: "Conflict",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: "Unsupported Media Type",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
