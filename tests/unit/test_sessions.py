"""
Unit tests for the session store and password hashing.
"""

import threading

from bookstore.http.request import HTTPRequest
from bookstore.passwords import hash_password, verify_password
from bookstore.sessions import SessionStore


def with_cookie(header: str) -> HTTPRequest:
    return HTTPRequest(method="GET", path="/api/cart", headers={"cookie": header})


class TestSessionStore:
    """Tests for SessionStore."""

    def test_create_and_get(self):
        """A created token resolves to its user."""
        store = SessionStore()
        token = store.create(7)

        session = store.get(token)
        assert session.user_id == 7
        assert session.token == token
        assert len(store) == 1

    def test_tokens_are_unique_and_opaque(self):
        """Tokens are long random strings, never the user id."""
        store = SessionStore()
        tokens = {store.create(1) for _ in range(50)}

        assert len(tokens) == 50
        assert all(len(t) >= 43 for t in tokens)
        assert "1" not in tokens

    def test_delete(self):
        """Deleting ends the session; deleting twice reports False."""
        store = SessionStore()
        token = store.create(3)

        assert store.delete(token) is True
        assert store.get(token) is None
        assert store.delete(token) is False
        assert store.delete(None) is False

    def test_unknown_token(self):
        store = SessionStore()
        assert store.get("forged") is None
        assert store.get("") is None
        assert store.get(None) is None

    def test_from_request(self):
        """The sessionId pair is found among other cookies."""
        store = SessionStore()
        token = store.create(5)

        session = store.from_request(with_cookie(f"theme=dark; sessionId={token}; lang=en"))
        assert session.user_id == 5

    def test_from_request_without_session(self):
        """Missing header, missing pair or unknown token all mean no session."""
        store = SessionStore()
        store.create(5)

        assert store.from_request(HTTPRequest(method="GET", path="/api/cart")) is None
        assert store.from_request(with_cookie("")) is None
        assert store.from_request(with_cookie("theme=dark")) is None
        assert store.from_request(with_cookie("sessionId=")) is None
        assert store.from_request(with_cookie("sessionId=nope")) is None

    def test_custom_cookie_name(self):
        store = SessionStore(cookie_name="sid")
        token = store.create(9)

        assert store.from_request(with_cookie(f"sid={token}")).user_id == 9
        assert store.from_request(with_cookie(f"sessionId={token}")) is None

    def test_concurrent_create(self):
        """Concurrent logins never lose or share a session."""
        store = SessionStore()
        tokens = []
        lock = threading.Lock()

        def login(user_id):
            token = store.create(user_id)
            with lock:
                tokens.append((token, user_id))

        threads = [threading.Thread(target=login, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 20
        for token, user_id in tokens:
            assert store.get(token).user_id == user_id


class TestPasswords:
    """Tests for hash_password() / verify_password()."""

    def test_round_trip(self):
        encoded = hash_password("correct horse", iterations=1000)

        assert encoded.startswith("pbkdf2_sha256$1000$")
        assert "correct horse" not in encoded
        assert verify_password("correct horse", encoded) is True
        assert verify_password("wrong", encoded) is False

    def test_salted(self):
        """The same password hashes differently each time."""
        assert hash_password("pw", iterations=1000) != hash_password("pw", iterations=1000)

    def test_malformed_hash(self):
        """Garbage in the password column never verifies."""
        assert verify_password("pw", "plaintext") is False
        assert verify_password("pw", "md5$1$aa$bb") is False
        assert verify_password("pw", "pbkdf2_sha256$x$zz$yy") is False
