"""
Unit tests for URL router and dispatcher.
"""

import pytest

from bookstore.dispatcher import Dispatcher
from bookstore.errors import MalformedRequest, NotFound, StorageError
from bookstore.http.request import HTTPRequest
from bookstore.http.response import HTTPResponse, ResponseBuilder, message
from bookstore.http.router import Router
from bookstore.sessions import SessionStore


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    """Dummy handler for testing."""
    return ResponseBuilder().json({"path": request.path, "params": request.path_params}).build()


class TestRouter:
    """Tests for Router class."""

    def test_add_route(self):
        """Test adding routes."""
        router = Router()
        route = router.add_route("/api/books", dummy_handler, method="get")

        assert route.method == "GET"
        assert router.routes() == [route]

    def test_match_with_method(self):
        """Test method-based routing."""
        router = Router()
        router.add_route("/api/cart", dummy_handler, method="GET")
        router.add_route("/api/cart", dummy_handler, method="POST")

        assert router.match("GET", "/api/cart").route.method == "GET"
        assert router.match("POST", "/api/cart").route.method == "POST"
        assert router.match("PATCH", "/api/cart") is None

    def test_match_dynamic_params(self):
        """Test dynamic path parameters."""
        router = Router()
        router.add_route("/api/books/:id", dummy_handler)

        match = router.match("GET", "/api/books/123")
        assert match.params == {"id": "123"}
        assert router.match("GET", "/api/books/1/extra") is None
        assert router.match("GET", "/api/books") is None

    def test_match_wildcard(self):
        """Test wildcard path matching."""
        router = Router()
        router.add_route("/uploads/*path", dummy_handler)

        match = router.match("GET", "/uploads/books/1_a.png")
        assert match.params == {"path": "books/1_a.png"}

    def test_root_route(self):
        router = Router()
        router.add_route("/", dummy_handler)

        assert router.match("GET", "/") is not None
        assert router.match("GET", "/books") is None

    def test_trailing_slash(self):
        router = Router()
        router.add_route("/api/books", dummy_handler)

        assert router.match("GET", "/api/books/") is not None

    def test_first_registered_wins(self):
        """Routes are tried in registration order."""
        router = Router()
        first = router.add_route("/api/books/:id", dummy_handler)
        router.add_route("/api/books/latest", dummy_handler)

        assert router.match("GET", "/api/books/latest").route is first

    def test_decorators(self):
        router = Router()

        @router.delete("/api/cart/:id", requires_auth=True)
        def remove(request):
            return message("removed")

        route = router.match("DELETE", "/api/cart/5").route
        assert route.handler is remove
        assert route.requires_auth is True

    def test_sealed_router_rejects_routes(self):
        router = Router()
        router.add_route("/", dummy_handler)
        router.seal()

        assert router.sealed is True
        with pytest.raises(RuntimeError):
            router.add_route("/late", dummy_handler)


class TestDispatcher:
    """Tests for Dispatcher: routing, the session gate and error mapping."""

    @pytest.fixture
    def sessions(self):
        return SessionStore()

    @pytest.fixture
    def dispatcher(self, sessions):
        router = Router()
        calls = []

        @router.get("/open/:id")
        def open_route(request):
            return ResponseBuilder().json({"id": request.int_param("id")}).build()

        @router.post("/private", requires_auth=True)
        def private(request):
            calls.append(request.session.user_id)
            return message("ok")

        @router.get("/missing")
        def missing(request):
            raise NotFound("Book not found")

        @router.get("/storage")
        def storage(request):
            raise StorageError("disk I/O error at /var/lib/db")

        @router.get("/boom")
        def boom(request):
            raise ZeroDivisionError("boom")

        @router.post("/json")
        def needs_json(request):
            return message(str(request.json()))

        d = Dispatcher(router, sessions)
        d.calls = calls
        return d

    def test_unmatched_is_plain_404(self, dispatcher):
        response = dispatcher(HTTPRequest(method="GET", path="/nowhere"))

        assert response.status == 404
        assert response.body == b"404 - Not Found"

    def test_path_params_set(self, dispatcher):
        response = dispatcher(HTTPRequest(method="GET", path="/open/7"))
        assert response.json_body() == {"id": 7}

    def test_bad_id_is_400(self, dispatcher):
        response = dispatcher(HTTPRequest(method="GET", path="/open/abc"))

        assert response.status == 400
        assert "message" in response.json_body()

    def test_auth_required_without_cookie(self, dispatcher):
        """A gated route without a session never reaches its handler."""
        response = dispatcher(HTTPRequest(method="POST", path="/private"))

        assert response.status == 401
        assert response.json_body() == {"message": "Not authenticated"}
        assert dispatcher.calls == []

    def test_auth_required_with_unknown_token(self, dispatcher):
        request = HTTPRequest(method="POST", path="/private", headers={"cookie": "sessionId=forged"})

        assert dispatcher(request).status == 401
        assert dispatcher.calls == []

    def test_auth_required_with_session(self, dispatcher, sessions):
        token = sessions.create(42)
        request = HTTPRequest(method="POST", path="/private", headers={"cookie": f"sessionId={token}"})

        response = dispatcher(request)

        assert response.status == 200
        assert dispatcher.calls == [42]
        assert request.session.user_id == 42

    def test_not_found_error(self, dispatcher):
        response = dispatcher(HTTPRequest(method="GET", path="/missing"))

        assert response.status == 404
        assert response.json_body() == {"message": "Book not found"}

    def test_storage_error_hides_details(self, dispatcher):
        response = dispatcher(HTTPRequest(method="GET", path="/storage"))

        assert response.status == 500
        assert response.json_body() == {"message": "Server error"}

    def test_unexpected_exception_is_500(self, dispatcher):
        response = dispatcher(HTTPRequest(method="GET", path="/boom"))

        assert response.status == 500
        assert response.json_body() == {"message": "Server error"}

    def test_malformed_body_is_400(self, dispatcher):
        response = dispatcher(HTTPRequest(method="POST", path="/json", body=b"{oops"))

        assert response.status == 400

    def test_malformed_request_default_message(self):
        assert MalformedRequest().status_code == 400
