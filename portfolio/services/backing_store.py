"""Backing store interface and the factory that picks a variant from settings.

A store holds opaque objects under ``/``-separated logical paths relative to
its ``root``. Version tokens are whatever the medium uses to detect concurrent
modification (content hash, blob SHA, ETag); callers only compare them.
"""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from portfolio.core.errors import NotFoundError, ValidationError


@dataclass(frozen=True)
class StoredObject:
    key: str
    size: int = 0
    etag: Optional[str] = None


@dataclass(frozen=True)
class StoredBlob:
    data: bytes
    version: str


def normalize_key(path: str) -> str:
    """Collapse a logical path and refuse anything that escapes the store root."""
    raw = (path or "").replace("\\", "/").strip("/")
    if not raw:
        raise ValidationError("Empty storage path")
    norm = posixpath.normpath(raw)
    if norm.startswith("..") or norm.startswith("/") or norm == ".":
        raise ValidationError(f"Invalid storage path: {path}")
    return norm


def join_key(root: str, key: str) -> str:
    root = (root or "").strip("/")
    return f"{root}/{key}" if root else key


class BackingStore(ABC):
    name = "abstract"

    def __init__(self, root: str = ""):
        self.root = (root or "").strip("/")

    def full_key(self, path: str) -> str:
        return join_key(self.root, normalize_key(path))

    def relative_key(self, full_key: str) -> str:
        if self.root and full_key.startswith(self.root + "/"):
            return full_key[len(self.root) + 1 :]
        return full_key

    @abstractmethod
    def put(
        self,
        data: bytes,
        path: str,
        content_type: str = "application/octet-stream",
        if_match: Optional[str] = None,
        if_none_match: bool = False,
    ) -> StoredObject:
        """Create or overwrite one object.

        `if_match` conditions the write on the current version token and
        `if_none_match` on the object being absent; a failed condition raises
        ConflictError.
        """

    @abstractmethod
    def get(self, path: str) -> StoredBlob:
        """Return content and version token; NotFoundError when missing."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove one object; NotFoundError when missing."""

    @abstractmethod
    def list(self, prefix: str) -> List[StoredObject]:
        """Full listing of keys under `prefix`, sorted by key."""

    def exists(self, path: str) -> bool:
        try:
            self.get(path)
            return True
        except NotFoundError:
            return False

    def close(self) -> None:
        pass


def build_store(settings, root: Optional[str] = None) -> BackingStore:
    """Construct the store named by STORAGE_BACKEND.

    `root` overrides STORAGE_ROOT so the listing documents can live in a
    different part of the same medium than the images.
    """
    backend = (getattr(settings, "STORAGE_BACKEND", "local") or "local").lower()
    store_root = settings.STORAGE_ROOT if root is None else root
    timeout = float(getattr(settings, "HTTP_TIMEOUT_SECONDS", 10.0))

    if backend == "local":
        from portfolio.services.local_storage import LocalStorage

        return LocalStorage(settings.LOCAL_STORAGE_ROOT, root=store_root)
    if backend == "s3":
        from portfolio.services.s3_storage import S3StorageService

        endpoint = settings.S3_ENDPOINT_URL
        if not endpoint and settings.R2_ACCOUNT_ID:
            endpoint = f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com"
        return S3StorageService(
            region=settings.S3_REGION,
            bucket=settings.S3_BUCKET,
            endpoint_url=endpoint or None,
            access_key=settings.AWS_ACCESS_KEY_ID,
            secret_key=settings.AWS_SECRET_ACCESS_KEY,
            root=store_root,
            timeout=timeout,
        )
    if backend == "github":
        from portfolio.services.github_storage import GitHubStorage

        return GitHubStorage(
            owner=settings.GITHUB_OWNER,
            repo=settings.GITHUB_REPO,
            branch=settings.GITHUB_BRANCH,
            token=settings.GITHUB_TOKEN,
            api_url=settings.GITHUB_API_URL,
            root=store_root,
            timeout=timeout,
        )
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")
