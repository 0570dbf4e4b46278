from __future__ import annotations

import mimetypes
import re
import time
from functools import lru_cache
from pathlib import Path, PureWindowsPath
from threading import Lock
from typing import Dict, Iterable, Optional

from settings import get_settings

_UNSAFE_NAME_CHARS = re.compile(r"[^\w.-]+")


def safe_filename(filename: Optional[str]) -> str:
    """Basename of ``filename`` with either separator style, reduced to key-safe characters."""

    name = PureWindowsPath(filename or "").name
    name = _UNSAFE_NAME_CHARS.sub("_", name).strip("._")
    return name or "upload"


def make_object_key(filename: str, now_ms: Optional[int] = None) -> str:
    """Build a storage key of the form ``<millis>_<name>``."""

    stamp = int(time.time() * 1000) if now_ms is None else now_ms
    return f"{stamp}_{safe_filename(filename)}"


def guess_media_type(key: str) -> str:
    media_type, _ = mimetypes.guess_type(key)
    return media_type or "application/octet-stream"


class AttachmentStore:
    """Flat object store for files attached to measurements."""

    def __init__(self, root_path: Optional[Path] = None) -> None:
        self._objects: Dict[str, bytes] = {}
        self.root_path = root_path
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    def put_object(self, key: str, data: bytes) -> None:
        self._check_key(key)
        with self._lock:
            self._write(key, data)

    def put_new_object(self, filename: str, data: bytes) -> str:
        """Store ``data`` under an unused ``<millis>_<name>`` key and return the key."""

        with self._lock:
            stamp = int(time.time() * 1000)
            key = make_object_key(filename, stamp)
            while self._exists(key):
                stamp += 1
                key = make_object_key(filename, stamp)
            self._check_key(key)
            self._write(key, data)
        return key

    def get_object(self, key: str) -> bytes:
        self._check_key(key)
        with self._lock:
            data = self._objects.get(key)
            if data is not None:
                return data

        if self.root_path:
            path = self.root_path / key
            if path.is_file():
                return path.read_bytes()

        raise KeyError(f"Attachment {key!r} not found.")

    def delete_object(self, key: str) -> bool:
        self._check_key(key)
        with self._lock:
            removed = self._objects.pop(key, None) is not None
            if self.root_path:
                path = self.root_path / key
                if path.is_file():
                    path.unlink()
                    removed = True
        return removed

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._exists(key)

    def list_objects(self) -> Iterable[str]:
        with self._lock:
            keys = set(self._objects)
        if self.root_path:
            keys.update(path.name for path in self.root_path.iterdir() if path.is_file())
        return sorted(keys)

    def _write(self, key: str, data: bytes) -> None:
        if self.root_path:
            (self.root_path / key).write_bytes(data)
        else:
            self._objects[key] = data

    def _exists(self, key: str) -> bool:
        if key in self._objects:
            return True
        return bool(self.root_path) and (self.root_path / key).is_file()

    @staticmethod
    def _check_key(key: str) -> None:
        if not key or "/" in key or "\\" in key or key in {".", ".."}:
            raise KeyError(f"Invalid attachment key {key!r}.")


@lru_cache
def build_default_store(root_path: Optional[str] = None) -> AttachmentStore:
    settings = get_settings()
    upload_root = settings.upload_dir if root_path is None else root_path
    return AttachmentStore(root_path=Path(upload_root) if upload_root else None)
