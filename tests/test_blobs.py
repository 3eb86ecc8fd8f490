"""Tests for local blob storage helpers."""
import pytest

from imgsearch.domain.exceptions import NotFoundError
from imgsearch.storage.blobs import LocalBlobStore, read_image_size, sanitize_filename, stored_name_for


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("holiday photo.JPG", "holiday_photo.JPG"),
        ("../../etc/passwd", "passwd"),
        ("...", "upload"),
        ("résumé.png", "r_sum_.png"),
    ],
)
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected


def test_stored_name_keeps_lowercased_extension():
    name = stored_name_for("Cat.PNG")
    assert name.endswith(".png")
    assert stored_name_for("Cat.PNG") != name


def test_read_image_size(png):
    assert read_image_size(png(7, 3)) == (7, 3)
    assert read_image_size(b"not an image") == (None, None)


def test_save_read_delete_roundtrip(tmp_path):
    store = LocalBlobStore(tmp_path / "blobs")
    rel = store.save(b"bytes", "a.png")

    assert store.read(rel) == b"bytes"
    assert store.delete(rel) is True
    assert store.delete(rel) is False
    with pytest.raises(NotFoundError):
        store.read(rel)


def test_paths_outside_root_are_refused(tmp_path):
    store = LocalBlobStore(tmp_path / "blobs")
    (tmp_path / "secret.txt").write_text("nope")

    with pytest.raises(NotFoundError):
        store.read("../secret.txt")
