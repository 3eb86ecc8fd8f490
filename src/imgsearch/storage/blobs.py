"""Local-disk storage for raw upload bytes."""
from __future__ import annotations

import io
import re
import uuid
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from imgsearch.config import settings
from imgsearch.domain.exceptions import NotFoundError

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(name: str) -> str:
    """Strip directories and anything outside ``[A-Za-z0-9._-]``."""
    base = Path(name).name
    cleaned = _UNSAFE.sub("_", base).strip("._")
    return cleaned or "upload"


def stored_name_for(original_name: str) -> str:
    """``<uuid4><ext>``; the extension is kept so mime sniffing still works."""
    ext = Path(sanitize_filename(original_name)).suffix.lower()
    return f"{uuid.uuid4()}{ext}"


def read_image_size(data: bytes) -> tuple[int | None, int | None]:
    """Width/height from the image header, or ``(None, None)`` if undecodable."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.width, img.height
    except (UnidentifiedImageError, OSError):
        return None, None


class LocalBlobStore:
    def __init__(self, root: Path | None = None) -> None:
        self.root = Path(root or settings.uploads_dir)

    def full_path(self, rel_path: str) -> Path:
        path = (self.root / rel_path).resolve()
        if self.root.resolve() not in path.parents:
            raise NotFoundError(f"Blob {rel_path!r} is outside the store")
        return path

    def save(self, data: bytes, filename: str) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        rel_path = sanitize_filename(filename)
        (self.root / rel_path).write_bytes(data)
        return rel_path

    def read(self, rel_path: str) -> bytes:
        path = self.full_path(rel_path)
        if not path.is_file():
            raise NotFoundError(f"Blob {rel_path!r} not found")
        return path.read_bytes()

    def delete(self, rel_path: str) -> bool:
        path = self.full_path(rel_path)
        if not path.exists():
            return False
        path.unlink()
        return True
