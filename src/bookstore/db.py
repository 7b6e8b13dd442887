"""
=============================================================================
DATA STORE
=============================================================================

The storefront's relational data lives in SQLite. Handlers only see the
narrow CRUD surface of `Database`; rows come back as plain dicts ready to be
serialized as JSON.

=============================================================================
SCHEMA
=============================================================================

    ┌──────────────┐        ┌──────────────┐        ┌──────────────┐
    │    users     │        │     cart     │        │    books     │
    ├──────────────┤        ├──────────────┤        ├──────────────┤
    │ id       PK  │◄───────│ user_id  FK  │   ┌───►│ id       PK  │
    │ name         │        │ book_id  FK  │───┘    │ title        │
    │ email UNIQUE │        │ quantity     │        │ author       │
    │ password     │        └──────────────┘        │ price        │
    │ photo        │        ┌──────────────┐        │ image        │
    └──────────────┘◄───────│ wishlist     │───────►└──────────────┘
                            │ user_id, book_id     │
                            └──────────────┘

Foreign keys are enforced, so a book can only be deleted after its cart and
wishlist rows are gone. `DELETE /api/books/:id` removes them in that order.

=============================================================================
CONCURRENCY
=============================================================================

One connection is shared by all worker threads (`check_same_thread=False`)
and every statement runs under `_lock`. Each public method is one
transaction: committed on success, rolled back on any error.

=============================================================================
ERRORS
=============================================================================

    sqlite3.IntegrityError on users.email  →  Conflict("Email already registered")
    any other sqlite3.Error                →  StorageError (details logged only)

=============================================================================
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from .errors import Conflict, StorageError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    email       TEXT NOT NULL UNIQUE,
    password    TEXT NOT NULL,
    photo       TEXT,
    created_at  TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS books (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL,
    author      TEXT NOT NULL,
    price       REAL NOT NULL,
    image       TEXT,
    created_at  TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS cart (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     INTEGER NOT NULL REFERENCES users(id),
    book_id     INTEGER NOT NULL REFERENCES books(id),
    quantity    INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS wishlist (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     INTEGER NOT NULL REFERENCES users(id),
    book_id     INTEGER NOT NULL REFERENCES books(id)
);
"""

USER_COLUMNS = "id, name, email, photo"

# Cart and wishlist rows carry a summary of their book
BOOK_SUMMARY_COLUMNS = (
    "b.id AS b_id, b.title AS b_title, b.author AS b_author, "
    "b.price AS b_price, b.image AS b_image"
)


class Database:
    """
    SQLite-backed store.

    Args:
        path: Database file, or ":memory:" for a throwaway store.
    """

    def __init__(self, path: Union[str, Path] = ":memory:"):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self.path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self.init_schema()

    def init_schema(self) -> None:
        with self._lock:
            try:
                self._conn.executescript(SCHEMA)
            except sqlite3.Error as e:
                raise StorageError(f"Cannot create schema: {e}") from e
        logger.debug(f"Schema ready in {self.path}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.IntegrityError as e:
                if "users.email" in str(e):
                    raise Conflict("Email already registered") from e
                logger.error(f"Integrity error: {e}")
                raise StorageError(str(e)) from e
            except sqlite3.Error as e:
                logger.error(f"Database error: {e}")
                raise StorageError(str(e)) from e

    def _one(self, sql: str, params: tuple = ()) -> Optional[Row]:
        with self._transaction() as conn:
            row = conn.execute(sql, params).fetchone()
        return dict(row) if row else None

    def _all(self, sql: str, params: tuple = ()) -> List[Row]:
        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(row) for row in rows]

    # =========================================================================
    # USERS
    # =========================================================================

    def create_user(self, name: str, email: str, password_hash: str,
                    photo: Optional[str] = None) -> Row:
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO users (name, email, password, photo) VALUES (?, ?, ?, ?)",
                (name, email, password_hash, photo),
            )
            user_id = cursor.lastrowid
        return self.get_user_by_id(user_id)

    def get_user_by_email(self, email: str) -> Optional[Row]:
        """Full row, password hash included. Never send this to a client."""
        return self._one("SELECT * FROM users WHERE email = ?", (email,))

    def get_user_by_id(self, user_id: int) -> Optional[Row]:
        return self._one(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,))

    def update_user(self, user_id: int, name: str, email: str,
                    photo: Optional[str] = None) -> Optional[Row]:
        """Update name and email; the photo only when a new one is given."""
        with self._transaction() as conn:
            if photo:
                conn.execute(
                    "UPDATE users SET name = ?, email = ?, photo = ? WHERE id = ?",
                    (name, email, photo, user_id),
                )
            else:
                conn.execute(
                    "UPDATE users SET name = ?, email = ? WHERE id = ?",
                    (name, email, user_id),
                )
        return self.get_user_by_id(user_id)

    # =========================================================================
    # BOOKS
    # =========================================================================

    def create_book(self, title: str, author: str, price: float,
                    image: Optional[str] = None) -> Row:
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO books (title, author, price, image) VALUES (?, ?, ?, ?)",
                (title, author, price, image),
            )
            book_id = cursor.lastrowid
        return self.get_book(book_id)

    def list_books(self, limit: Optional[int] = None) -> List[Row]:
        """Newest first."""
        if limit:
            return self._all("SELECT * FROM books ORDER BY id DESC LIMIT ?", (limit,))
        return self._all("SELECT * FROM books ORDER BY id DESC")

    def get_book(self, book_id: int) -> Optional[Row]:
        return self._one("SELECT * FROM books WHERE id = ?", (book_id,))

    def update_book(self, book_id: int, title: str, author: str, price: float,
                    image: Optional[str] = None) -> Optional[Row]:
        """Returns None when the book does not exist. Keeps the image unless replaced."""
        with self._transaction() as conn:
            if image:
                cursor = conn.execute(
                    "UPDATE books SET title = ?, author = ?, price = ?, image = ? WHERE id = ?",
                    (title, author, price, image, book_id),
                )
            else:
                cursor = conn.execute(
                    "UPDATE books SET title = ?, author = ?, price = ? WHERE id = ?",
                    (title, author, price, book_id),
                )
            if cursor.rowcount == 0:
                return None
        return self.get_book(book_id)

    def delete_book(self, book_id: int) -> Optional[Row]:
        """Delete and return the book, or None if it did not exist."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        return dict(row)

    # =========================================================================
    # CART
    # =========================================================================

    def get_cart(self, user_id: int) -> List[Row]:
        """Cart rows of one user, newest first, each with a nested `book`."""
        rows = self._all(
            f"SELECT c.id, c.quantity, c.user_id, c.book_id, {BOOK_SUMMARY_COLUMNS} "
            "FROM cart c JOIN books b ON c.book_id = b.id "
            "WHERE c.user_id = ? ORDER BY c.id DESC",
            (user_id,),
        )
        return [_nest_book(row) for row in rows]

    def get_cart_item(self, cart_id: int) -> Optional[Row]:
        return self._one("SELECT * FROM cart WHERE id = ?", (cart_id,))

    def add_to_cart(self, user_id: int, book_id: int, quantity: int = 1) -> Row:
        """Insert a cart row, or add `quantity` to the existing row for this book."""
        with self._transaction() as conn:
            existing = conn.execute(
                "SELECT id FROM cart WHERE user_id = ? AND book_id = ?",
                (user_id, book_id),
            ).fetchone()
            if existing:
                cart_id = existing["id"]
                conn.execute(
                    "UPDATE cart SET quantity = quantity + ? WHERE id = ?",
                    (quantity, cart_id),
                )
            else:
                cart_id = conn.execute(
                    "INSERT INTO cart (user_id, book_id, quantity) VALUES (?, ?, ?)",
                    (user_id, book_id, quantity),
                ).lastrowid
        return self.get_cart_item(cart_id)

    def update_cart_quantity(self, cart_id: int, quantity: int) -> Optional[Row]:
        with self._transaction() as conn:
            cursor = conn.execute("UPDATE cart SET quantity = ? WHERE id = ?", (quantity, cart_id))
            if cursor.rowcount == 0:
                return None
        return self.get_cart_item(cart_id)

    def remove_from_cart(self, cart_id: int) -> Optional[Row]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM cart WHERE id = ?", (cart_id,)).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM cart WHERE id = ?", (cart_id,))
        return dict(row)

    def clear_cart(self, user_id: int) -> int:
        with self._transaction() as conn:
            return conn.execute("DELETE FROM cart WHERE user_id = ?", (user_id,)).rowcount

    def delete_cart_by_book_id(self, book_id: int) -> int:
        with self._transaction() as conn:
            return conn.execute("DELETE FROM cart WHERE book_id = ?", (book_id,)).rowcount

    # =========================================================================
    # WISHLIST
    # =========================================================================

    def get_wishlist(self, user_id: int) -> List[Row]:
        rows = self._all(
            f"SELECT w.id, w.user_id, w.book_id, {BOOK_SUMMARY_COLUMNS} "
            "FROM wishlist w JOIN books b ON w.book_id = b.id "
            "WHERE w.user_id = ? ORDER BY w.id DESC",
            (user_id,),
        )
        return [_nest_book(row) for row in rows]

    def get_wishlist_item(self, wishlist_id: int) -> Optional[Row]:
        return self._one("SELECT * FROM wishlist WHERE id = ?", (wishlist_id,))

    def add_to_wishlist(self, user_id: int, book_id: int) -> Row:
        """Idempotent: returns the existing row if the book is already listed."""
        with self._transaction() as conn:
            existing = conn.execute(
                "SELECT id FROM wishlist WHERE user_id = ? AND book_id = ?",
                (user_id, book_id),
            ).fetchone()
            if existing:
                wishlist_id = existing["id"]
            else:
                wishlist_id = conn.execute(
                    "INSERT INTO wishlist (user_id, book_id) VALUES (?, ?)",
                    (user_id, book_id),
                ).lastrowid
        return self.get_wishlist_item(wishlist_id)

    def remove_from_wishlist(self, wishlist_id: int) -> Optional[Row]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM wishlist WHERE id = ?", (wishlist_id,)).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM wishlist WHERE id = ?", (wishlist_id,))
        return dict(row)

    def clear_wishlist(self, user_id: int) -> int:
        with self._transaction() as conn:
            return conn.execute("DELETE FROM wishlist WHERE user_id = ?", (user_id,)).rowcount

    def delete_wishlist_by_book_id(self, book_id: int) -> int:
        with self._transaction() as conn:
            return conn.execute("DELETE FROM wishlist WHERE book_id = ?", (book_id,)).rowcount


def _nest_book(row: Row) -> Row:
    """Fold the b_* summary columns into a nested `book` dict."""
    book = {
        "id": row.pop("b_id"),
        "title": row.pop("b_title"),
        "author": row.pop("b_author"),
        "price": row.pop("b_price"),
        "image": row.pop("b_image"),
    }
    row["book"] = book
    return row
