"""
=============================================================================
UPLOAD STORE
=============================================================================

Writes uploaded cover images and profile photos under the public uploads
directory and returns the URL path they are served from.

    store(b"\\x89PNG...", "My Cover (v2).png", "books")

        public/uploads/books/1792252800123_My_Cover__v2_.png     ← on disk
        /uploads/books/1792252800123_My_Cover__v2_.png           ← returned

Naming:

    {unix millis}_{base name with every non [A-Za-z0-9] char → "_"}{extension}

Only the last component of the client's filename is used, whichever
separator the client's OS uses, so "..\\..\\evil.png" is stored as
"{millis}_evil.png" inside the subfolder.

Two uploads of the same filename in the same millisecond would produce the
same name. Files are opened with mode "xb" (fail if present), and on a clash
a counter is added before the extension:

    1792252800123_cover.png
    1792252800123_cover_1.png
    1792252800123_cover_2.png

=============================================================================
"""

import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import UploadError

logger = logging.getLogger(__name__)

UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")

# Clash retries before giving up; only reachable under a frozen clock
MAX_SUFFIX = 1000


@dataclass
class StoredUpload:
    disk_path: Path
    public_path: str


class UploadStore:
    """
    Persists upload payloads under `root_dir/<subfolder>/`.

    Args:
        root_dir: Upload root on disk (usually public/uploads).
        public_prefix: URL prefix the root is served under.
    """

    def __init__(self, root_dir: Union[str, Path], public_prefix: str = "/uploads"):
        self.root_dir = Path(root_dir)
        self.public_prefix = "/" + public_prefix.strip("/")

    def store(self, payload: bytes, original_filename: str, subfolder: str) -> str:
        """
        Write `payload` and return its public path.

        Raises:
            UploadError: The directory or file could not be written.
        """
        return self.save(payload, original_filename, subfolder).public_path

    def save(self, payload: bytes, original_filename: str, subfolder: str) -> StoredUpload:
        """Like store(), but returns both the disk path and the public path."""
        target_dir = self.root_dir / subfolder
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise UploadError(f"Cannot create upload directory {target_dir}: {e}") from e

        stem = self.build_name(original_filename)
        base, ext = os.path.splitext(stem)

        for attempt in range(MAX_SUFFIX):
            name = stem if attempt == 0 else f"{base}_{attempt}{ext}"
            disk_path = target_dir / name
            try:
                with open(disk_path, "xb") as f:
                    f.write(payload)
            except FileExistsError:
                continue
            except OSError as e:
                raise UploadError(f"Cannot write upload {disk_path}: {e}") from e

            public_path = f"{self.public_prefix}/{subfolder}/{name}"
            logger.info(f"Stored upload {original_filename!r} ({len(payload)} bytes) as {public_path}")
            return StoredUpload(disk_path=disk_path, public_path=public_path)

        raise UploadError(f"No free name for {stem} in {target_dir}")

    def discard(self, public_path: Optional[str]) -> None:
        """Delete a stored upload again, given its public path."""
        prefix = self.public_prefix + "/"
        if not public_path or not public_path.startswith(prefix):
            return
        disk_path = self.root_dir / public_path[len(prefix):]
        try:
            disk_path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Cannot remove orphaned upload {disk_path}: {e}")
            return
        logger.info(f"Removed orphaned upload {public_path}")

    def build_name(self, original_filename: str) -> str:
        """
        Timestamped, sanitized file name (without any clash suffix).

            "a b.JPG" at 1792252800123 ms  →  "1792252800123_a_b.JPG"
        """
        filename = re.split(r"[\\/]", original_filename)[-1]
        base, ext = os.path.splitext(filename)
        millis = int(time.time() * 1000)
        return f"{millis}_{UNSAFE_CHARS.sub('_', base)}{ext}"
