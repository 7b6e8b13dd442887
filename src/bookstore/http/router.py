"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler. The storefront's route table is small and
fixed: it is built once by `create_app()` and sealed before the server
starts accepting connections.

=============================================================================
PATTERNS
=============================================================================

    ┌──────────────────────┬──────────────────────┬─────────────────────────┐
    │  Pattern             │  Matches             │  path_params            │
    ├──────────────────────┼──────────────────────┼─────────────────────────┤
    │  /api/books          │  /api/books          │  {}                     │
    │  /api/books/:id      │  /api/books/7        │  {"id": "7"}            │
    │                      │  /api/books/abc      │  {"id": "abc"}  → 400   │
    │                      │  /api/books/         │  (no match)     → 404   │
    │  /css/*path          │  /css/site/main.css  │  {"path": "site/main.css"}│
    └──────────────────────┴──────────────────────┴─────────────────────────┘

`:name` matches one segment, `*name` swallows the rest of the path. Segment
values are strings; handlers convert ids with `request.int_param("id")`,
which is where a non-numeric id becomes a 400.

Matching is first-registered, first-matched. A trailing slash is ignored.

=============================================================================
ROUTE METADATA
=============================================================================

Each route carries `requires_auth`. The router only records it; the
Dispatcher reads it and checks the session before the handler runs:

    router.get("/api/cart", requires_auth=True)(cart.list_items)

=============================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Pattern, Tuple

from .request import HTTPRequest
from .response import HTTPResponse

logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    One entry of the route table.

    Attributes:
        path: Pattern as registered ("/api/cart/:id").
        method: Upper-case HTTP method.
        handler: Callable taking the request, returning a response.
        requires_auth: Session required before the handler runs.
    """

    path: str
    method: str
    handler: Handler
    requires_auth: bool = False
    _pattern: Optional[Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """
    Route table with decorator registration.

        router = Router()

        @router.get("/api/books")
        def list_books(request):
            return ok(db.list_books())

        @router.delete("/api/cart/:id", requires_auth=True)
        def remove(request):
            ...

    Once `seal()` is called no more routes can be added.
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        """Freeze the table. Called by the server right before it starts."""
        if not self._sealed:
            self._sealed = True
            for route in self._routes:
                logger.debug(f"Route {route.method:6} {route.path}"
                             f"{' (auth)' if route.requires_auth else ''}")

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: str = "GET",
        requires_auth: bool = False,
    ) -> Route:
        if self._sealed:
            raise RuntimeError("Routes cannot be added after the router is sealed")

        pattern, param_names = self._compile_pattern(path)
        route = Route(
            path=path,
            method=method.upper(),
            handler=handler,
            requires_auth=requires_auth,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str) -> Tuple[Pattern, List[str]]:
        """
        Compile a route pattern into an anchored regex.

            "/api/cart/:id"   →  ^/api/cart/(?P<id>[^/]+)$
            "/uploads/*path"  →  ^/uploads/(?P<path>.*)$
            "/"               →  ^/$
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue
            regex_parts.append("/")
            if segment.startswith(":"):
                name = segment[1:]
                param_names.append(name)
                regex_parts.append(f"(?P<{name}>[^/]+)")
            elif segment.startswith("*"):
                name = segment[1:] or "wildcard"
                param_names.append(name)
                regex_parts.append(f"(?P<{name}>.*)")
                break
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")
        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route whose method and pattern both match, or None."""
        if path != "/":
            path = "/" + path.strip("/")
        method = method.upper()

        for route in self._routes:
            if route.method != method:
                continue
            found = route._pattern.match(path)
            if found:
                return RouteMatch(route=route, params=found.groupdict())
        return None

    # =========================================================================
    # DECORATORS
    # =========================================================================

    def route(self, path: str, method: str, requires_auth: bool = False) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method, requires_auth)
            return handler
        return decorator

    def get(self, path: str, requires_auth: bool = False) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", requires_auth)

    def post(self, path: str, requires_auth: bool = False) -> Callable[[Handler], Handler]:
        return self.route(path, "POST", requires_auth)

    def put(self, path: str, requires_auth: bool = False) -> Callable[[Handler], Handler]:
        return self.route(path, "PUT", requires_auth)

    def patch(self, path: str, requires_auth: bool = False) -> Callable[[Handler], Handler]:
        return self.route(path, "PATCH", requires_auth)

    def delete(self, path: str, requires_auth: bool = False) -> Callable[[Handler], Handler]:
        return self.route(path, "DELETE", requires_auth)

    def routes(self) -> List[Route]:
        return list(self._routes)
