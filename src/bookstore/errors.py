"""
=============================================================================
ERROR KINDS
=============================================================================

Every failure a handler can report is one of the exceptions below. The
dispatcher catches them at the request boundary and turns them into a JSON
response:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    ERROR → RESPONSE MAPPING                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   MalformedRequest   → 400  {"message": "Invalid JSON body"}        │
    │   Unauthenticated    → 401  {"message": "Not authenticated"}        │
    │   NotFound           → 404  {"message": "Book not found"}           │
    │   Conflict           → 400  {"message": "Email already registered"} │
    │   StorageError       → 500  {"message": "Server error"}             │
    │   UploadError        → 500  {"message": "Server error"}             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Server-side failures (storage, disk) keep their details for the log and only
expose a generic message to the client.

=============================================================================
"""

from typing import Optional


class BookstoreError(Exception):
    """
    Base class for errors that map to an HTTP response.

    Attributes:
        message: Human-readable text sent to the client.
        status_code: HTTP status to answer with.
    """

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        """The message that is safe to put in a response body."""
        return self.message


class MalformedRequest(BookstoreError):
    """Unparseable body, missing boundary, bad numeric id, missing field."""

    status_code = 400
    default_message = "Bad request"


class Unauthenticated(BookstoreError):
    """No session, or the session cookie does not match a live session."""

    status_code = 401
    default_message = "Not authenticated"


class NotFound(BookstoreError):
    """The referenced entity does not exist."""

    status_code = 404
    default_message = "Not found"


class Conflict(BookstoreError):
    """
    The write collides with existing data (duplicate email).

    The public API answers duplicates with 400, so that is the default here.
    """

    status_code = 400
    default_message = "Conflict"


class StorageError(BookstoreError):
    """The data store failed. Details stay in the server log."""

    status_code = 500

    @property
    def public_message(self) -> str:
        return self.default_message


class UploadError(BookstoreError):
    """Writing an uploaded file to disk failed."""

    status_code = 500

    @property
    def public_message(self) -> str:
        return self.default_message
