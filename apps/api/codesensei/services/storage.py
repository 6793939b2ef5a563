import logging
import os
import re
import time
from pathlib import Path


logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

_SAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_.-]+")


def generate_file_name(user_id: str, original_name: str, content_type: str = "") -> str:
    extension = ""
    if "." in (original_name or ""):
        extension = original_name.rsplit(".", 1)[1].lower()
    extension = _SAFE_SEGMENT.sub("", extension) or ALLOWED_IMAGE_TYPES.get(content_type, "bin")
    owner = _SAFE_SEGMENT.sub("_", user_id) or "anonymous"
    return f"profile-images/{owner}/{int(time.time() * 1000)}.{extension}"


class LocalObjectStorage:
    """Stores uploaded objects under a local directory that the app serves statically."""

    def __init__(self, root: str, base_url: str = "/media") -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _path_for(self, name: str) -> Path:
        path = (self.root / name).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"object_path_outside_root:{name}")
        return path

    def upload(self, data: bytes, name: str, content_type: str = "") -> str:
        path = self._path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Stored %s (%s, %s bytes)", name, content_type or "unknown", len(data))
        return f"{self.base_url}/{name}"

    def name_from_url(self, url: str) -> str | None:
        prefix = f"{self.base_url}/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix) :]

    def delete(self, name: str) -> bool:
        path = self._path_for(name)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        logger.info("Deleted %s", name)
        return True
