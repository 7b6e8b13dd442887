"""
=============================================================================
SESSION STORE
=============================================================================

In-memory mapping from an opaque token to the user who logged in with it.

    POST /api/login  ──►  store.create(user_id)  ──►  Set-Cookie: sessionId=<token>
    GET  /api/cart   ──►  Cookie: sessionId=<token>  ──►  store.get(token) → Session
    POST /api/logout ──►  store.delete(token)

    ┌───────────────────────────────────────────────────────────────────┐
    │  _sessions: Dict[str, Session]                                    │
    │                                                                   │
    │    "q1Zr...Xk" ─► Session(user_id=1, created_at=1792252800.1)     │
    │    "L0pa...3w" ─► Session(user_id=4, created_at=1792252911.7)     │
    └───────────────────────────────────────────────────────────────────┘

Requests run on worker threads, so every operation holds `_lock`. Each of
create, get and delete is a single dict operation under the lock.

Nothing is persisted: a restart logs everybody out. Sessions record their
creation time but are never expired here.

=============================================================================
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from .http.request import HTTPRequest

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "sessionId"

# 32 random bytes → 43 url-safe characters
TOKEN_BYTES = 32


@dataclass(frozen=True)
class Session:
    """An authenticated login."""

    token: str
    user_id: int
    created_at: float = field(default_factory=time.time)


class SessionStore:
    """
    Thread-safe token → Session map.

    Args:
        cookie_name: Cookie that carries the token.
    """

    def __init__(self, cookie_name: str = DEFAULT_COOKIE_NAME):
        self.cookie_name = cookie_name
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self, user_id: int) -> str:
        """Start a session for `user_id` and return its token."""
        with self._lock:
            token = secrets.token_urlsafe(TOKEN_BYTES)
            while token in self._sessions:
                token = secrets.token_urlsafe(TOKEN_BYTES)
            self._sessions[token] = Session(token=token, user_id=user_id)
        logger.debug(f"Session {token[:6]}... created for user {user_id}")
        return token

    def get(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def delete(self, token: Optional[str]) -> bool:
        """Drop a session. Returns False when there was nothing to drop."""
        if not token:
            return False
        with self._lock:
            session = self._sessions.pop(token, None)
        if session:
            logger.debug(f"Session {token[:6]}... deleted for user {session.user_id}")
        return session is not None

    def from_request(self, request: HTTPRequest) -> Optional[Session]:
        """
        Resolve the request's session cookie.

        A missing Cookie header, a missing pair or an unknown token all mean
        "no session"; none of them is an error.
        """
        return self.get(request.cookies.get(self.cookie_name))

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
