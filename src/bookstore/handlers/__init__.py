"""
=============================================================================
REQUEST HANDLERS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ static.py     /css, /js, /uploads files and the HTML pages          │
    │ books.py      /api/books catalogue (image uploads)                  │
    │ accounts.py   /api/users, /api/login, /api/logout, /api/profile     │
    │ cart.py       /api/cart (session required)                          │
    │ wishlist.py   /api/wishlist (session required)                      │
    └─────────────────────────────────────────────────────────────────────┘

Each handler class takes its collaborators in __init__ and adds its routes
with register(router):

    books = BookHandler(db, uploads)
    books.register(router)

=============================================================================
"""

from .static import StaticFileHandler, PageHandler, register_static
from .books import BookHandler
from .accounts import AccountHandler
from .cart import CartHandler
from .wishlist import WishlistHandler

__all__ = [
    "StaticFileHandler",
    "PageHandler",
    "register_static",
    "BookHandler",
    "AccountHandler",
    "CartHandler",
    "WishlistHandler",
]
