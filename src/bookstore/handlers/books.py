"""
=============================================================================
BOOK CATALOGUE API
=============================================================================

    GET    /api/books?limit=N   → 200 [book, ...]            newest first
    GET    /api/books/:id       → 200 book          | 404
    POST   /api/books           → 201 book
    PUT    /api/books/:id       → 200 book          | 404
    DELETE /api/books/:id       → 200 {"message"}   | 404

POST and PUT accept either JSON or multipart/form-data:

    JSON:       {"title": "Dune", "author": "Herbert", "price": 9.99}
    multipart:  title, author, price text fields + optional "image" file

An uploaded image is stored under uploads/books/ and the book's `image`
column holds its public path. A PUT without a new image keeps the old one.

Deleting a book first removes every cart and wishlist row pointing at it,
then the book itself:

    cart rows ──► wishlist rows ──► book row

=============================================================================
"""

import logging
from typing import Optional

from ..db import Database
from ..errors import BookstoreError, NotFound
from ..http.multipart import MultipartForm
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, created, message, ok
from ..http.router import Router
from ..uploads import UploadStore
from .fields import optional_text, parse_limit, require_price, require_text

logger = logging.getLogger(__name__)


class BookHandler:
    """Handlers for /api/books."""

    IMAGE_FIELD = "image"
    SUBFOLDER = "books"

    def __init__(self, db: Database, uploads: UploadStore):
        self.db = db
        self.uploads = uploads

    def register(self, router: Router) -> None:
        router.get("/api/books")(self.list_books)
        router.get("/api/books/:id")(self.get_book)
        router.post("/api/books")(self.create_book)
        router.put("/api/books/:id")(self.update_book)
        router.delete("/api/books/:id")(self.delete_book)

    def list_books(self, request: HTTPRequest) -> HTTPResponse:
        limit = parse_limit(request.get_query("limit"))
        return ok(self.db.list_books(limit))

    def get_book(self, request: HTTPRequest) -> HTTPResponse:
        return ok(self._existing_book(request.int_param("id")))

    def create_book(self, request: HTTPRequest) -> HTTPResponse:
        form = request.form()
        title = require_text(form.fields, "title")
        author = require_text(form.fields, "author")
        price = require_price(form.fields)

        stored = self._save_image(form)
        image = stored
        if image is None and not request.is_multipart:
            # JSON clients may point at an already uploaded image
            image = optional_text(form.fields, "image")

        try:
            book = self.db.create_book(title, author, price, image)
        except BookstoreError:
            self.uploads.discard(stored)
            raise
        logger.info(f"Book {book['id']} created: {title!r}")
        return created(book)

    def update_book(self, request: HTTPRequest) -> HTTPResponse:
        book_id = request.int_param("id")
        self._existing_book(book_id)

        form = request.form()
        title = require_text(form.fields, "title")
        author = require_text(form.fields, "author")
        price = require_price(form.fields)

        stored = self._save_image(form)
        image = stored
        if image is None and not request.is_multipart:
            image = optional_text(form.fields, "image")

        try:
            book = self.db.update_book(book_id, title, author, price, image)
            if book is None:
                raise NotFound("Book not found")
        except BookstoreError:
            self.uploads.discard(stored)
            raise
        return ok(book)

    def delete_book(self, request: HTTPRequest) -> HTTPResponse:
        book_id = request.int_param("id")
        self._existing_book(book_id)

        carts = self.db.delete_cart_by_book_id(book_id)
        wishlists = self.db.delete_wishlist_by_book_id(book_id)
        if self.db.delete_book(book_id) is None:
            raise NotFound("Book not found")

        logger.info(f"Book {book_id} deleted ({carts} cart rows, {wishlists} wishlist rows)")
        return message("Book deleted successfully")

    def _existing_book(self, book_id: int) -> dict:
        book = self.db.get_book(book_id)
        if book is None:
            raise NotFound("Book not found")
        return book

    def _save_image(self, form: MultipartForm) -> Optional[str]:
        upload = form.file(self.IMAGE_FIELD)
        if upload is None or not upload.payload:
            return None
        return self.uploads.store(upload.payload, upload.filename, self.SUBFOLDER)
