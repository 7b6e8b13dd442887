"""
Shopping cart API. Every route needs a session and only ever touches the
signed-in user's rows; another user's row id answers 404.

    GET    /api/cart        → 200 [{id, quantity, user_id, book_id, book: {...}}, ...]
    POST   /api/cart        {"book_id": 3, "quantity": 2}  → 201 cart row
    PATCH  /api/cart/:id    {"quantity": 5}                → 200 cart row
    DELETE /api/cart/:id    → 200 {"message": "Item removed from cart"}
    DELETE /api/cart        → 200 {"message": "Cart cleared"}

Adding a book that is already in the cart adds to its quantity.
"""

import logging

from ..db import Database
from ..errors import NotFound
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, created, message, ok
from ..http.router import Router
from .fields import optional_int, require_int

logger = logging.getLogger(__name__)


class CartHandler:

    def __init__(self, db: Database):
        self.db = db

    def register(self, router: Router) -> None:
        router.get("/api/cart", requires_auth=True)(self.list_items)
        router.post("/api/cart", requires_auth=True)(self.add_item)
        router.delete("/api/cart", requires_auth=True)(self.clear)
        router.patch("/api/cart/:id", requires_auth=True)(self.update_quantity)
        router.delete("/api/cart/:id", requires_auth=True)(self.remove_item)

    def list_items(self, request: HTTPRequest) -> HTTPResponse:
        return ok(self.db.get_cart(request.session.user_id))

    def add_item(self, request: HTTPRequest) -> HTTPResponse:
        data = request.json()
        book_id = require_int(data, "book_id")
        quantity = optional_int(data, "quantity", default=1)

        if self.db.get_book(book_id) is None:
            raise NotFound("Book not found")

        row = self.db.add_to_cart(request.session.user_id, book_id, quantity)
        return created(row)

    def update_quantity(self, request: HTTPRequest) -> HTTPResponse:
        cart_id = request.int_param("id")
        quantity = require_int(request.json(), "quantity")

        self._owned_item(request, cart_id)
        row = self.db.update_cart_quantity(cart_id, quantity)
        if row is None:
            raise NotFound("Cart item not found")
        return ok(row)

    def remove_item(self, request: HTTPRequest) -> HTTPResponse:
        cart_id = request.int_param("id")
        self._owned_item(request, cart_id)
        self.db.remove_from_cart(cart_id)
        return message("Item removed from cart")

    def clear(self, request: HTTPRequest) -> HTTPResponse:
        removed = self.db.clear_cart(request.session.user_id)
        logger.debug(f"Cleared {removed} cart rows for user {request.session.user_id}")
        return message("Cart cleared")

    def _owned_item(self, request: HTTPRequest, cart_id: int) -> dict:
        row = self.db.get_cart_item(cart_id)
        if row is None or row["user_id"] != request.session.user_id:
            raise NotFound("Cart item not found")
        return row
