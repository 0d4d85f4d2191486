"""Filesystem backing store."""

import hashlib
import logging
import os
import threading
from typing import List, Optional

from portfolio.core.errors import ConflictError, NotFoundError, StoreError
from portfolio.services.backing_store import BackingStore, StoredBlob, StoredObject

logger = logging.getLogger(__name__)


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class LocalStorage(BackingStore):
    """Objects are plain files under ``base_dir/root``; the version token is the
    SHA-256 of the file content."""

    name = "local"

    def __init__(self, base_dir: str, root: str = ""):
        super().__init__(root)
        self.base_dir = os.path.abspath(base_dir)
        # Conditional writes are compare-then-replace; serialize them per instance
        self._lock = threading.Lock()
        os.makedirs(self.base_dir, exist_ok=True)
        logger.info(f"Local storage rooted at '{self.base_dir}'")

    def _path(self, path: str) -> str:
        return os.path.join(self.base_dir, *self.full_key(path).split("/"))

    def _read(self, fs_path: str) -> bytes:
        try:
            with open(fs_path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise NotFoundError(f"Object not found: {fs_path}")
        except OSError as e:
            raise StoreError(f"Failed to read {fs_path}: {e}")

    def put(self, data, path, content_type="application/octet-stream", if_match=None, if_none_match=False):
        fs_path = self._path(path)
        with self._lock:
            if if_match is not None or if_none_match:
                current: Optional[str]
                try:
                    current = _digest(self._read(fs_path))
                except NotFoundError:
                    current = None
                if if_none_match and current is not None:
                    raise ConflictError(f"Object already exists: {path}")
                if if_match is not None and current != if_match:
                    raise ConflictError(f"Version mismatch for {path}")
            try:
                os.makedirs(os.path.dirname(fs_path), exist_ok=True)
                tmp = fs_path + ".tmp"
                with open(tmp, "wb") as f:
                    f.write(data)
                os.replace(tmp, fs_path)
            except OSError as e:
                logger.error(f"Local write failed for {path}: {e}")
                raise StoreError(f"Failed to write {path}: {e}")
        logger.debug(f"Wrote {len(data)} bytes to {fs_path}")
        return StoredObject(key=self.relative_key(self.full_key(path)), size=len(data), etag=_digest(data))

    def get(self, path):
        data = self._read(self._path(path))
        return StoredBlob(data=data, version=_digest(data))

    def delete(self, path):
        fs_path = self._path(path)
        try:
            os.remove(fs_path)
        except FileNotFoundError:
            raise NotFoundError(f"Object not found: {path}")
        except OSError as e:
            logger.error(f"Local delete failed for {path}: {e}")
            raise StoreError(f"Failed to delete {path}: {e}")
        logger.info(f"Deleted {fs_path}")

    def list(self, prefix: str) -> List[StoredObject]:
        prefix_key = self.full_key(prefix)
        top = os.path.join(self.base_dir, *prefix_key.split("/"))
        if not os.path.isdir(top):
            return []
        out = []
        try:
            for dirpath, _, filenames in os.walk(top):
                for fn in filenames:
                    if fn.endswith(".tmp"):
                        continue
                    full = os.path.join(dirpath, fn)
                    rel = os.path.relpath(full, self.base_dir).replace(os.sep, "/")
                    out.append(
                        StoredObject(
                            key=self.relative_key(rel),
                            size=os.path.getsize(full),
                        )
                    )
        except OSError as e:
            raise StoreError(f"Failed to list {prefix}: {e}")
        return sorted(out, key=lambda o: o.key)

    def exists(self, path: str) -> bool:
        return os.path.isfile(self._path(path))
