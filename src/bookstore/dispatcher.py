"""
=============================================================================
REQUEST DISPATCHER
=============================================================================

Sits between the middleware pipeline and the handlers. For each request:

    ┌──────────┐   ┌────────┐   ┌────────────┐   ┌─────────┐   ┌───────────┐
    │ Received │──►│ Routed │──►│ Authorized │──►│ Handled │──►│ Responded │
    └──────────┘   └────────┘   └────────────┘   └─────────┘   └───────────┘
         │              │              │              │              ▲
         │              │ no route     │ no session   │ error        │
         │              └──────────────┴──────────────┴──────────────┘
         │                 404 text      401 JSON       status + {"message"}

Bodies are already buffered by the Connection. Handlers decode them on
demand with `request.form()` / `request.json()`, so a bad body surfaces as
a MalformedRequest from inside the handler and takes the same error path.

The session check happens before the handler is called. A gated route
without a live session never reaches its handler, so it has no side
effects at all.

Errors never escape: BookstoreError subclasses map to their status, and
anything else is logged with its traceback and answered with a generic 500.

=============================================================================
"""

import logging

from .errors import BookstoreError, Unauthenticated
from .http.request import HTTPRequest
from .http.response import HTTPResponse, internal_error, message, not_found
from .http.router import Router
from .sessions import SessionStore

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Routes requests and turns handler errors into responses.

    Instances are callables, so one can be the final handler of a
    MiddlewarePipeline.
    """

    def __init__(self, router: Router, sessions: SessionStore):
        self.router = router
        self.sessions = sessions

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return self.dispatch(request)

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        match = self.router.match(request.method, request.path)
        if match is None:
            return not_found()

        request.path_params = match.params
        route = match.route

        try:
            if route.requires_auth:
                session = self.sessions.from_request(request)
                if session is None:
                    raise Unauthenticated()
                request.session = session

            return route.handler(request)

        except BookstoreError as e:
            if e.status_code >= 500:
                logger.error(f"{request.method} {request.path} failed: {e.message}")
            else:
                logger.debug(f"{request.method} {request.path} → {e.status_code} {e.message}")
            return message(e.public_message, e.status_code)

        except Exception:
            logger.exception(f"Unhandled error in {request.method} {request.path}")
            return internal_error()
