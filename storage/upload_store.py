from __future__ import annotations

import io
import shutil
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import BinaryIO, Dict, Iterator, List, Optional

from settings import get_settings

_COPY_BUFFER_SIZE = 64 * 1024


class UploadStore:
    """Staging area for uploaded CSV bytes, in memory or under ``root_path``.

    Uploads only live here until their ingestion finishes; raw records are not
    kept afterwards.
    """

    def __init__(self, root_path: Optional[Path] = None) -> None:
        self.root_path = root_path
        self._objects: Dict[str, bytes] = {}
        self._lock = Lock()
        if root_path:
            root_path.mkdir(parents=True, exist_ok=True)

    def put_stream(self, key: str, source: BinaryIO) -> int:
        """Copy ``source`` under ``key`` and return the number of bytes written."""
        if self.root_path:
            path = self._path(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as target:
                shutil.copyfileobj(source, target, _COPY_BUFFER_SIZE)
            return path.stat().st_size

        data = source.read()
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._lock:
            self._objects[key] = data
        return len(data)

    @contextmanager
    def open_object(self, key: str) -> Iterator[BinaryIO]:
        """Yield a binary handle positioned at the start of the stored upload."""
        if self.root_path:
            path = self._path(key)
            if not path.exists():
                raise KeyError(f"Upload {key!r} not found.")
            with path.open("rb") as handle:
                yield handle
            return

        with self._lock:
            data = self._objects.get(key)
        if data is None:
            raise KeyError(f"Upload {key!r} not found.")
        with io.BytesIO(data) as buffer:
            yield buffer

    def delete_object(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)
        if self.root_path:
            self._path(key).unlink(missing_ok=True)

    def list_objects(self) -> List[str]:
        with self._lock:
            keys = set(self._objects)
        if self.root_path:
            keys.update(
                path.relative_to(self.root_path).as_posix()
                for path in self.root_path.rglob("*")
                if path.is_file()
            )
        return sorted(keys)

    def _path(self, key: str) -> Path:
        if self.root_path is None:
            raise RuntimeError("UploadStore has no root path; uploads are kept in memory.")
        return self.root_path / key


@lru_cache
def build_default_store(root_path: Optional[str] = None) -> UploadStore:
    settings = get_settings()
    store_root = settings.upload_root_path if root_path is None else root_path
    return UploadStore(root_path=Path(store_root) if store_root else None)
