"""
Unit tests for upload persistence.
"""

import time

import pytest

from bookstore.errors import UploadError
from bookstore.uploads import UploadStore

FROZEN = 1792252800.5  # → 1792252800500 ms


@pytest.fixture
def frozen_clock(monkeypatch):
    monkeypatch.setattr(time, "time", lambda: FROZEN)


class TestUploadStore:
    """Tests for UploadStore."""

    def test_store_writes_payload(self, tmp_path, png_bytes, frozen_clock):
        """The payload lands on disk byte-exact and the public path points at it."""
        store = UploadStore(tmp_path / "uploads")
        public_path = store.store(png_bytes, "cover.png", "books")

        assert public_path == "/uploads/books/1792252800500_cover.png"
        assert (tmp_path / "uploads" / "books" / "1792252800500_cover.png").read_bytes() == png_bytes

    def test_subfolder_created(self, tmp_path):
        """The subfolder is created on first use."""
        store = UploadStore(tmp_path / "uploads")
        store.store(b"x", "me.jpg", "users")

        assert (tmp_path / "uploads" / "users").is_dir()

    def test_sanitized_name(self, frozen_clock):
        """Non-alphanumerics in the base become underscores; the extension is kept."""
        store = UploadStore("unused")

        assert store.build_name("my cover (final).JPG") == "1792252800500_my_cover__final_.JPG"
        assert store.build_name("résumé.pdf") == "1792252800500_r_sum_.pdf"
        assert store.build_name("noext") == "1792252800500_noext"

    def test_client_path_stripped(self, tmp_path, frozen_clock):
        """Directory parts of the client file name never reach the disk path."""
        store = UploadStore(tmp_path / "uploads")
        saved = store.save(b"x", "../../etc/passwd", "books")
        windows = store.save(b"y", "C:\\Users\\me\\photo.png", "users")

        assert saved.public_path == "/uploads/books/1792252800500_passwd"
        assert windows.public_path == "/uploads/users/1792252800500_photo.png"
        assert saved.disk_path.parent == tmp_path / "uploads" / "books"

    def test_collision_gets_suffix(self, tmp_path, frozen_clock):
        """Two uploads in the same millisecond never overwrite each other."""
        store = UploadStore(tmp_path / "uploads")
        first = store.save(b"first", "a.png", "books")
        second = store.save(b"second", "a.png", "books")
        third = store.save(b"third", "a.png", "books")

        assert first.public_path == "/uploads/books/1792252800500_a.png"
        assert second.public_path == "/uploads/books/1792252800500_a_1.png"
        assert third.public_path == "/uploads/books/1792252800500_a_2.png"
        assert first.disk_path.read_bytes() == b"first"
        assert second.disk_path.read_bytes() == b"second"

    def test_custom_public_prefix(self, tmp_path, frozen_clock):
        store = UploadStore(tmp_path, public_prefix="/media/")

        assert store.store(b"x", "a.png", "books") == "/media/books/1792252800500_a.png"

    def test_unwritable_root(self, tmp_path):
        """A root that cannot be created is an UploadError."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = UploadStore(blocker / "uploads")

        with pytest.raises(UploadError) as exc_info:
            store.store(b"x", "a.png", "books")

        assert exc_info.value.status_code == 500
        assert exc_info.value.public_message == "Server error"

    def test_discard(self, tmp_path, frozen_clock):
        store = UploadStore(tmp_path)
        stored = store.save(b"x", "a.png", "users")

        store.discard(stored.public_path)

        assert not stored.disk_path.exists()

    def test_discard_ignores_foreign_paths(self, tmp_path):
        """None, paths outside the prefix and missing files are left alone."""
        store = UploadStore(tmp_path)
        (tmp_path / "keep.txt").write_text("x")

        store.discard(None)
        store.discard("/css/keep.txt")
        store.discard("/uploads/users/gone.png")

        assert (tmp_path / "keep.txt").exists()
