"""
Tests against a live HTTPServer on a real socket.
"""

from http.client import HTTPConnection
import json
import socket
import threading

import pytest

from bookstore import HTTPServer


@pytest.fixture
def http_conn(live_server):
    host, port = live_server.address
    conn = HTTPConnection(host, port, timeout=5)
    yield conn
    conn.close()


def send_raw(address, data: bytes) -> bytes:
    """Send bytes on a fresh socket and read until the server closes it."""
    with socket.create_connection(address, timeout=5) as sock:
        sock.sendall(data)
        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestLiveServer:
    """End-to-end tests over TCP."""

    def test_book_round_trip(self, http_conn):
        body = json.dumps({"title": "X", "author": "Y", "price": 9.99})
        http_conn.request("POST", "/api/books", body=body, headers={"Content-Type": "application/json"})
        response = http_conn.getresponse()
        created = json.loads(response.read())

        assert response.status == 201
        assert response.getheader("Server") == "Bookstore/1.0"
        assert created["image"] is None

        # Same keep-alive connection
        http_conn.request("GET", "/api/books")
        response = http_conn.getresponse()
        assert response.status == 200
        assert json.loads(response.read())[0]["id"] == created["id"]

    def test_login_cookie_and_cart(self, http_conn):
        form = json.dumps({"name": "Ada", "email": "ada@example.com", "password": "pw"})
        http_conn.request("POST", "/api/users", body=form, headers={"Content-Type": "application/json"})
        assert http_conn.getresponse().read()

        http_conn.request("POST", "/api/login", body=json.dumps({"email": "ada@example.com", "password": "pw"}),
                          headers={"Content-Type": "application/json"})
        response = http_conn.getresponse()
        response.read()
        cookie = response.getheader("Set-Cookie").split(";")[0]

        http_conn.request("GET", "/api/cart")
        unauthenticated = http_conn.getresponse()
        unauthenticated.read()
        assert unauthenticated.status == 401

        http_conn.request("GET", "/api/cart", headers={"Cookie": cookie})
        response = http_conn.getresponse()
        assert response.status == 200
        assert json.loads(response.read()) == []

    def test_multipart_upload_with_expect_continue(self, live_server, multipart, png_bytes):
        body, content_type = multipart(
            {"title": "Dune", "author": "Frank Herbert", "price": "9.5"},
            {"image": ("dune.png", png_bytes, "image/png")},
        )
        head = (
            "POST /api/books HTTP/1.1\r\n"
            "Host: localhost\r\n"
            f"Content-Type: {content_type}\r\n"
            f"Content-Length: {len(body)}\r\n"
            "Expect: 100-continue\r\n"
            "Connection: close\r\n\r\n"
        ).encode("latin-1")

        with socket.create_connection(live_server.address, timeout=5) as sock:
            sock.sendall(head)
            interim = sock.recv(1024)
            assert interim.startswith(b"HTTP/1.1 100 Continue")
            sock.sendall(body)
            data = b""
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                data += chunk

        assert data.startswith(b"HTTP/1.1 201 Created")
        book = json.loads(data.split(b"\r\n\r\n", 1)[1])
        assert book["image"].startswith("/uploads/books/")

    def test_malformed_request_line(self, live_server):
        data = send_raw(live_server.address, b"NONSENSE\r\n\r\n")

        assert data.startswith(b"HTTP/1.1 400 Bad Request")
        assert b"Connection: close" in data

    def test_unknown_method(self, live_server):
        data = send_raw(live_server.address, b"BREW /pot HTTP/1.1\r\nHost: x\r\n\r\n")
        assert data.startswith(b"HTTP/1.1 405")

    def test_oversized_body_refused(self, live_server):
        size = live_server.config.max_request_size + 1
        data = send_raw(
            live_server.address,
            f"POST /api/books HTTP/1.1\r\nHost: x\r\nContent-Length: {size}\r\n\r\n".encode(),
        )

        assert data.startswith(b"HTTP/1.1 413")

    def test_unmatched_route(self, live_server):
        data = send_raw(live_server.address, b"GET /nope HTTP/1.1\r\nConnection: close\r\n\r\n")

        assert data.startswith(b"HTTP/1.1 404 Not Found")
        assert data.endswith(b"404 - Not Found")

    def test_http10_closes(self, live_server):
        data = send_raw(live_server.address, b"GET /api/books HTTP/1.0\r\n\r\n")

        assert data.startswith(b"HTTP/1.1 200 OK")
        assert b"Connection: close" in data


class TestServerLifecycle:
    """Starting and stopping HTTPServer."""

    def test_run_returns_cleanly_after_stop(self, config):
        server = HTTPServer(config)
        errors = []

        def serve():
            try:
                server.run()
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        try:
            assert server.wait_until_ready(5.0)
            server.stop()
            thread.join(timeout=10.0)

            assert not thread.is_alive()
            assert errors == []
        finally:
            server.app.db.close()
