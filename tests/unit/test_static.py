"""
Unit tests for static file and page serving.
"""

from bookstore.handlers.static import PageHandler, StaticFileHandler, register_static
from bookstore.http.request import HTTPRequest
from bookstore.http.router import Router


def get(path: str, **headers) -> HTTPRequest:
    return HTTPRequest(method="GET", path=path, headers={k.replace("_", "-"): v for k, v in headers.items()})


class TestStaticFileHandler:
    """Tests for StaticFileHandler."""

    def test_serve_file(self, site_dirs):
        handler = StaticFileHandler(site_dirs["public"] / "css", url_prefix="/css")
        response = handler.serve("style.css", get("/css/style.css"))

        assert response.status == 200
        assert response.body == b"body { color: #333; }\n"
        assert response.headers["Content-Type"] == "text/css; charset=utf-8"
        assert "ETag" in response.headers
        assert "Last-Modified" in response.headers
        assert response.headers["Cache-Control"] == "public, max-age=3600"

    def test_binary_file_byte_exact(self, site_dirs, png_bytes):
        (site_dirs["uploads"] / "books").mkdir()
        (site_dirs["uploads"] / "books" / "1_a.png").write_bytes(png_bytes)
        handler = StaticFileHandler(site_dirs["uploads"], url_prefix="/uploads")

        response = handler.serve("books/1_a.png", get("/uploads/books/1_a.png"))

        assert response.body == png_bytes
        assert response.headers["Content-Type"] == "image/png"

    def test_missing_file(self, site_dirs):
        handler = StaticFileHandler(site_dirs["public"] / "css")
        response = handler.serve("nope.css", get("/css/nope.css"))

        assert response.status == 404
        assert response.body == b"File not found"

    def test_directory_is_not_a_file(self, site_dirs):
        handler = StaticFileHandler(site_dirs["public"])
        assert handler.serve("css", get("/css")).status == 404

    def test_traversal_forbidden(self, site_dirs):
        """Paths resolving outside the root are refused."""
        handler = StaticFileHandler(site_dirs["public"] / "css")
        response = handler.serve("../../secret.txt", get("/css/x"))

        assert response.status == 403
        assert b"do not serve" not in response.body

    def test_conditional_get(self, site_dirs):
        """A matching If-None-Match gets 304 with no body."""
        handler = StaticFileHandler(site_dirs["public"] / "js")
        first = handler.serve("app.js", get("/js/app.js"))

        second = handler.serve("app.js", get("/js/app.js", if_none_match=first.headers["ETag"]))

        assert second.status == 304
        assert second.body == b""

    def test_handle_uses_wildcard_param(self, site_dirs):
        handler = StaticFileHandler(site_dirs["public"] / "css", url_prefix="/css")
        request = get("/css/style.css")
        request.path_params = {"path": "style.css"}

        assert handler.handle(request).status == 200


class TestPages:
    """Tests for PageHandler and register_static."""

    def test_all_pages_routed(self, site_dirs):
        router = Router()
        PageHandler(site_dirs["views"]).register(router)

        for path, filename in PageHandler.PAGES.items():
            match = router.match("GET", path)
            assert match is not None, path
            response = match.route.handler(get(path))
            assert response.status == 200
            assert response.headers["Content-Type"] == "text/html; charset=utf-8"
            assert filename.split(".")[0].encode() in response.body

    def test_pages_not_cached(self, site_dirs):
        response = PageHandler(site_dirs["views"]).handle(get("/cart"))
        assert response.headers["Cache-Control"] == "public, max-age=0"

    def test_unknown_page(self, site_dirs):
        response = PageHandler(site_dirs["views"]).handle(get("/admin"))
        assert response.status == 404

    def test_register_static_mounts(self, site_dirs):
        router = Router()
        register_static(router, site_dirs["public"], site_dirs["uploads"])

        for path in ("/css/style.css", "/js/app.js", "/uploads/books/x.png"):
            assert router.match("GET", path) is not None, path
        assert router.match("GET", "/secret.txt") is None
