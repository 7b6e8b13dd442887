"""
Wishlist API, scoped to the signed-in user like the cart.

    GET    /api/wishlist       → 200 [{id, user_id, book_id, book: {...}}, ...]
    POST   /api/wishlist       {"book_id": 3} → 201 row (existing row if already listed)
    DELETE /api/wishlist/:id   → 200 {"message": "Item removed from wishlist"}
    DELETE /api/wishlist       → 200 {"message": "Wishlist cleared"}
"""

from ..db import Database
from ..errors import NotFound
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, created, message, ok
from ..http.router import Router
from .fields import require_int


class WishlistHandler:

    def __init__(self, db: Database):
        self.db = db

    def register(self, router: Router) -> None:
        router.get("/api/wishlist", requires_auth=True)(self.list_items)
        router.post("/api/wishlist", requires_auth=True)(self.add_item)
        router.delete("/api/wishlist", requires_auth=True)(self.clear)
        router.delete("/api/wishlist/:id", requires_auth=True)(self.remove_item)

    def list_items(self, request: HTTPRequest) -> HTTPResponse:
        return ok(self.db.get_wishlist(request.session.user_id))

    def add_item(self, request: HTTPRequest) -> HTTPResponse:
        book_id = require_int(request.json(), "book_id")
        if self.db.get_book(book_id) is None:
            raise NotFound("Book not found")
        return created(self.db.add_to_wishlist(request.session.user_id, book_id))

    def remove_item(self, request: HTTPRequest) -> HTTPResponse:
        wishlist_id = request.int_param("id")
        row = self.db.get_wishlist_item(wishlist_id)
        if row is None or row["user_id"] != request.session.user_id:
            raise NotFound("Wishlist item not found")
        self.db.remove_from_wishlist(wishlist_id)
        return message("Item removed from wishlist")

    def clear(self, request: HTTPRequest) -> HTTPResponse:
        self.db.clear_wishlist(request.session.user_id)
        return message("Wishlist cleared")
