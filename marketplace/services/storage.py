from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse


class LocalObjectStore:
    """
    Files on local disk under `base_dir`, published under `base_url`.

    Keys are relative POSIX paths (`uploads/<user_id>/<name>.jpg`); anything that
    would resolve outside `base_dir` is rejected.
    """

    def __init__(self, base_dir: str, base_url: str):
        self.base = Path(base_dir).resolve()
        self.base.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    def put_bytes(self, *, key: str, data: bytes) -> str:
        path = self.resolve_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return self.public_url(key)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def key_from_url(self, url: str) -> str | None:
        """Map one of our public URLs (or a bare key) back to its key."""
        if url.startswith(self.base_url + "/"):
            return url[len(self.base_url) + 1:]
        parsed = urlparse(url)
        if parsed.scheme or parsed.netloc:
            return None
        return url.lstrip("/") or None

    def resolve_path(self, key: str) -> Path:
        path = (self.base / key).resolve()
        if path != self.base and self.base not in path.parents:
            raise ValueError(f"Key escapes storage root: {key}")
        return path

    def exists(self, key: str) -> bool:
        return self.resolve_path(key).is_file()

    def delete(self, key: str) -> bool:
        path = self.resolve_path(key)
        if not path.is_file():
            return False
        path.unlink()
        return True
