"""Keeps each category's image listing in step with the backing store.

Two strategies:

* ``LiveListing`` - the store's prefix listing *is* the listing. Nothing to
  synchronize; dimensions are not stored so they come from a filename hint or
  the defaults.
* ``DocumentListing`` - a listing document per category (JSON, or the legacy
  page-source array) rewritten on every add/remove. Writes are conditioned on
  the version token read with the document; a concurrent writer makes the
  write fail with ConflictError, and the whole read-modify-write is retried a
  bounded number of times with exponential backoff.
"""

from __future__ import annotations

import logging
import posixpath
import time
from typing import Callable, List, Optional

from portfolio.core.errors import ConflictError, ListingFormatError, NotFoundError
from portfolio.services.backing_store import BackingStore
from portfolio.services.image_meta import dimensions_from_name, is_image_name
from portfolio.services.image_schema import DEFAULT_HEIGHT, DEFAULT_WIDTH, GalleryImage
from portfolio.services.listing_codec import get_codec

logger = logging.getLogger(__name__)
audit = logging.getLogger("audit")


def public_url(base_url: str, key: str) -> str:
    return f"{(base_url or '').rstrip('/')}/{key.lstrip('/')}"


class LiveListing:
    strategy = "live"

    def __init__(self, store: BackingStore, prefix: str = "portfolio", public_base_url: str = "/static"):
        self.store = store
        self.prefix = prefix.strip("/")
        self.public_base_url = public_base_url

    def read(self, category: str) -> List[GalleryImage]:
        images = []
        for obj in self.store.list(f"{self.prefix}/{category}"):
            name = posixpath.basename(obj.key)
            if not is_image_name(name):
                continue
            width, height = dimensions_from_name(name) or (DEFAULT_WIDTH, DEFAULT_HEIGHT)
            images.append(
                GalleryImage(src=public_url(self.public_base_url, obj.key), width=width, height=height)
            )
        return images

    def add(self, category: str, image: GalleryImage) -> None:
        # The stored object is already visible through the prefix listing
        return None

    def remove(self, category: str, src: str) -> None:
        return None


class DocumentListing:
    strategy = "document"

    def __init__(
        self,
        store: BackingStore,
        codec_name: str = "json",
        path_template: str = "listings/{category}.json",
        max_retries: int = 3,
        backoff_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.codec = get_codec(codec_name)
        self.path_template = path_template
        self.max_retries = max(0, int(max_retries))
        self.backoff_seconds = float(backoff_seconds)
        self._sleep = sleep

    def path_for(self, category: str) -> str:
        return self.path_template.format(category=category)

    def _fetch(self, category: str) -> tuple[Optional[str], Optional[str]]:
        """(text, version) or (None, None) when the document does not exist yet."""
        try:
            blob = self.store.get(self.path_for(category))
        except NotFoundError:
            return None, None
        try:
            text = blob.data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ListingFormatError(f"Listing {self.path_for(category)} is not UTF-8 text: {e}")
        return text, blob.version

    def read(self, category: str) -> List[GalleryImage]:
        text, _ = self._fetch(category)
        if text is None:
            return []
        return self.codec.parse(text)

    def _mutate(self, category: str, change: Callable[[Optional[str]], str], action: str) -> None:
        path = self.path_for(category)
        attempt = 0
        while True:
            text, version = self._fetch(category)
            new_text = change(text)
            try:
                self.store.put(
                    new_text.encode("utf-8"),
                    path,
                    content_type=self.codec.content_type,
                    if_match=version,
                    if_none_match=version is None,
                )
                return
            except ConflictError:
                if attempt >= self.max_retries:
                    logger.warning(
                        f"Listing {action} for {category} gave up after {attempt + 1} conflicting writes"
                    )
                    raise
                delay = self.backoff_seconds * (2**attempt)
                audit.info(
                    "listing.conflict_retry",
                    extra={"category": category, "action": action, "attempt": attempt + 1, "delay": delay},
                )
                self._sleep(delay)
                attempt += 1

    def add(self, category: str, image: GalleryImage) -> None:
        self._mutate(category, lambda text: self.codec.add(text, category, image), "add")

    def remove(self, category: str, src: str) -> None:
        def change(text: Optional[str]) -> str:
            if text is None:
                raise NotFoundError(f"No {category} listing exists")
            return self.codec.remove(text, category, src)

        self._mutate(category, change, "remove")


def build_listing(settings, image_store: BackingStore, listing_store: Optional[BackingStore] = None):
    strategy = (getattr(settings, "LISTING_STRATEGY", "document") or "document").lower()
    if strategy == "live":
        return LiveListing(image_store, settings.STORAGE_PREFIX, settings.PUBLIC_BASE_URL)
    if strategy == "document":
        return DocumentListing(
            listing_store or image_store,
            codec_name=settings.LISTING_FORMAT,
            path_template=settings.LISTING_PATH_TEMPLATE,
            max_retries=settings.LISTING_MAX_RETRIES,
            backoff_seconds=settings.LISTING_RETRY_BACKOFF_SECONDS,
        )
    raise ValueError(f"Unknown LISTING_STRATEGY: {strategy}")
