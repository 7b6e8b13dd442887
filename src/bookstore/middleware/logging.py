"""
=============================================================================
ACCESS LOG
=============================================================================

One line per request on the "bookstore.access" logger, in either format:

    text   127.0.0.1 - - [18/Oct/2026:10:15:02 +0000] "POST /api/cart" 201 74 3.21ms
    json   {"request_id": "9f1c2ab4", "method": "POST", "path": "/api/cart", ...}

Every response carries the same id in X-Request-ID so a client report can
be matched to the log line.

Never logged: request bodies (passwords, uploads), cookies and the
session token.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse

logger = logging.getLogger("bookstore.access")

LOG_FORMATS = ("text", "json")


@dataclass
class RequestLog:
    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str
    user_id: Optional[int] = None

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - {self.user_id or "-"} [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Times each request and writes an access log entry.

    Args:
        log_format: "text" (combined-log style) or "json".
        include_request_id: Add X-Request-ID to responses.
        log_level: Level of the access log records.
        skip_paths: Exact paths that are served but not logged.
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        if log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or ())

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = uuid.uuid4().hex[:8]
        start = time.time()

        try:
            response = next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({(time.time() - start) * 1000:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start) * 1000

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.get_header("user-agent") or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
            user_id=request.session.user_id if request.session else None,
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
