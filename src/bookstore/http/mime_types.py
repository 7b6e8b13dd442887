"""
=============================================================================
MIME TYPES FOR STATIC FILES
=============================================================================

The storefront serves a small, known set of assets: HTML views, the
stylesheet and script bundles, and uploaded cover images / profile photos.
The Content-Type is derived from the file extension with a fixed table.

    GET /uploads/books/1718000000000_dune.png
                                         ────
                                          │
                                          └── ".png" → "image/png"

Anything not in the table is served as plain text, so an unexpected file is
displayed rather than downloaded.

=============================================================================
"""

from pathlib import Path
from typing import Optional, Union


MIME_TYPES = {
    # Views and front-end bundles
    ".html": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".json": "application/json",

    # Cover images and profile photos
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
}

DEFAULT_MIME_TYPE = "text/plain"

_TEXT_APPLICATION_TYPES = {"application/json", "image/svg+xml"}


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    Look up the MIME type for a file name or path.

    Matching is case-insensitive on the extension:

        >>> get_mime_type("cover.PNG")
        'image/png'
        >>> get_mime_type("notes.xyz")
        'text/plain'
    """
    extension = Path(path).suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    """True for types that should carry a charset parameter."""
    return mime_type.startswith("text/") or mime_type in _TEXT_APPLICATION_TYPES


def get_content_type(path: Union[str, Path], charset: str = "utf-8") -> str:
    """
    Full Content-Type header value for a file.

        >>> get_content_type("index.html")
        'text/html; charset=utf-8'
        >>> get_content_type("cover.jpg")
        'image/jpeg'
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
