"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between raw bytes and handler calls:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py     bytes → HTTPRequest (cookies, ids, JSON / form body) │
    │ multipart.py   multipart/form-data body → fields + files            │
    │ response.py    HTTPResponse, ResponseBuilder, JSON/text shortcuts   │
    │ router.py      (method, path) → handler, with requires_auth flag    │
    │ status_codes   HTTPStatus enum with reason phrases                  │
    │ mime_types     extension → Content-Type for static files            │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_cookies
from .multipart import MultipartParser, MultipartForm, ParsedFile, parse_boundary
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,              # 200 JSON
    created,         # 201 JSON
    message,         # {"message": ...}
    json_response,
    text_response,
    not_found,       # 404 "404 - Not Found"
    internal_error,  # 500 {"message": "Server error"}
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type

__all__ = [
    # Requests
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_cookies",

    # Multipart bodies
    "MultipartParser",
    "MultipartForm",
    "ParsedFile",
    "parse_boundary",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "message",
    "json_response",
    "text_response",
    "not_found",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "RouteMatch",

    "HTTPStatus",
    "get_mime_type",
    "get_content_type",
]
