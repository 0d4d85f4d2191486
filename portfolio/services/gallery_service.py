"""Upload, delete and read handlers, independent of the HTTP layer.

Binary and listing are updated in two phases (store first, listing second).
Nothing makes the pair atomic, so a failure in the second phase is returned
as a *partial* result rather than raised or folded into success; the API layer
reports it with status 207 and records an incident for the reconcile job.
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
import secrets
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from portfolio.core.categories import CATEGORIES, is_valid_category
from portfolio.core.errors import (
    ListingFormatError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from portfolio.services.backing_store import BackingStore, normalize_key
from portfolio.services.fallback_images import fallback_images
from portfolio.services.image_meta import image_dimensions
from portfolio.services.image_schema import GalleryImage
from portfolio.services.listing_sync import public_url
from portfolio.services.mime_utils import is_allowed_image

logger = logging.getLogger(__name__)
audit = logging.getLogger("audit")

DEFAULT_ALLOWED_TYPES: Tuple[str, ...] = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
)


def safe_name(name: str) -> str:
    name = (name or "").replace("\\", "/").split("/")[-1]
    # allow alnum, dash, underscore, dot; strip others
    return re.sub(r"[^A-Za-z0-9._-]", "_", name)


@dataclass
class UploadResult:
    key: str
    file_path: str
    image: GalleryImage
    listed: bool = True
    listing_error: Optional[str] = None

    @property
    def partial(self) -> bool:
        return not self.listed

    @property
    def message(self) -> str:
        if self.partial:
            return f"File uploaded, but the gallery listing was not updated: {self.listing_error}"
        return "File uploaded successfully and gallery updated"


@dataclass
class DeleteResult:
    key: str
    src: str
    object_deleted: bool
    # None when the listing strategy keeps no separate entries (live listing)
    entry_removed: Optional[bool] = None
    listing_error: Optional[str] = None

    @property
    def partial(self) -> bool:
        return self.listing_error is not None

    @property
    def message(self) -> str:
        if self.partial:
            return f"Image deleted, but the gallery listing was not updated: {self.listing_error}"
        if self.object_deleted:
            return "Image deleted successfully"
        if self.entry_removed:
            return "Image file was already gone; stale gallery entry removed"
        return "Image already removed"


@dataclass
class GalleryPage:
    category: str
    images: List[GalleryImage] = field(default_factory=list)
    fallback: bool = False
    message: Optional[str] = None


class GalleryService:
    def __init__(
        self,
        store: BackingStore,
        listing,
        prefix: str = "portfolio",
        public_base_url: str = "/static",
        allowed_types: Tuple[str, ...] = DEFAULT_ALLOWED_TYPES,
        max_upload_bytes: int = 0,
        clock: Callable[[], float] = time.time,
        token: Callable[[], str] = lambda: secrets.token_hex(3),
    ):
        self.store = store
        self.listing = listing
        self.prefix = prefix.strip("/")
        self.public_base_url = public_base_url
        self.allowed_types = tuple(t.lower() for t in allowed_types)
        self.max_upload_bytes = int(max_upload_bytes or 0)
        self._clock = clock
        self._token = token

    # -- naming ---------------------------------------------------------

    def unique_filename(self, original: str) -> str:
        """`{base}-{millis}-{hex}{ext}`; the random suffix separates uploads that
        land in the same millisecond."""
        base, ext = os.path.splitext(safe_name(original))
        base = base.strip("._") or "image"
        ext = ext.lower() or ".jpg"
        millis = int(self._clock() * 1000)
        return f"{base}-{millis}-{self._token()}{ext}"

    def key_for(self, category: str, filename: str) -> str:
        return f"{self.prefix}/{category}/{filename}"

    def key_for_src(self, src: str, category: str) -> str:
        """Map a public src (absolute URL or root-relative path) back to its store key."""
        src = (src or "").strip()
        path = urlparse(src).path if "://" in src else src
        path = unquote(path)
        base = self.public_base_url or ""
        base_path = (urlparse(base).path if "://" in base else base).rstrip("/")

        if base_path and path.startswith(base_path + "/"):
            candidate = path[len(base_path) + 1 :]
        else:
            candidate = path.lstrip("/")
        expected = f"{self.prefix}/{category}/"
        if not candidate.startswith(expected):
            name = posixpath.basename(candidate)
            if not name:
                raise ValidationError("Invalid image source path", {"src": src})
            candidate = expected + name
        key = normalize_key(candidate)
        if not key.startswith(expected) or key == expected.rstrip("/"):
            raise ValidationError("Image source is outside the category", {"src": src, "category": category})
        return key

    # -- validation -----------------------------------------------------

    def _require_category(self, category: Optional[str], missing_message: str) -> str:
        if not category:
            raise ValidationError(missing_message)
        if not is_valid_category(category):
            raise ValidationError(
                "Invalid category",
                {"providedCategory": category, "validCategories": list(CATEGORIES)},
            )
        return category

    def _validate_upload(self, data: Optional[bytes], content_type: Optional[str]) -> str:
        allowed, mime = is_allowed_image(data, content_type, self.allowed_types)
        if not allowed:
            raise ValidationError(
                "File must be an image (JPEG, PNG, WebP, GIF)",
                {"fileType": mime, "validTypes": list(self.allowed_types)},
            )
        if self.max_upload_bytes and len(data) > self.max_upload_bytes:
            raise ValidationError(
                "File is too large",
                {"size": len(data), "maxBytes": self.max_upload_bytes},
            )
        return (content_type or mime).split(";")[0].strip().lower()

    # -- operations -----------------------------------------------------

    def upload(
        self,
        data: Optional[bytes],
        filename: Optional[str],
        content_type: Optional[str],
        category: Optional[str],
    ) -> UploadResult:
        if not data:
            raise ValidationError("No file provided")
        category = self._require_category(category, "No category provided")
        stored_type = self._validate_upload(data, content_type)

        fname = self.unique_filename(filename or "image")
        key = self.key_for(category, fname)
        width, height = image_dimensions(data, filename or "")

        # Phase 1: binary. A failure here leaves nothing behind.
        self.store.put(data, key, content_type=stored_type)
        src = public_url(self.public_base_url, key)
        image = GalleryImage(src=src, width=width, height=height)
        audit.info("image.stored", extra={"category": category, "key": key, "size": len(data)})

        # Phase 2: listing. A failure here is reported, not raised.
        try:
            self.listing.add(category, image)
        except Exception as e:
            logger.exception(f"Stored {key} but failed to add it to the {category} listing")
            return UploadResult(key=key, file_path=src, image=image, listed=False, listing_error=str(e))
        return UploadResult(key=key, file_path=src, image=image)

    def delete(self, src: Optional[str], category: Optional[str]) -> DeleteResult:
        if not src:
            raise ValidationError("Image source is required")
        category = self._require_category(category, "Category is required")
        key = self.key_for_src(src, category)
        canonical = public_url(self.public_base_url, key)

        object_deleted = True
        try:
            self.store.delete(key)
        except NotFoundError:
            # The user's intent (image gone) is already met; still drop any stale entry
            object_deleted = False
            logger.info(f"Delete of missing object {key}; cleaning listing only")

        result = DeleteResult(key=key, src=canonical, object_deleted=object_deleted)
        if getattr(self.listing, "strategy", "") == "live":
            return result

        try:
            self._remove_entry(category, canonical, src)
            result.entry_removed = True
        except NotFoundError:
            result.entry_removed = False
        except Exception as e:
            logger.exception(f"Failed to remove {canonical} from the {category} listing")
            result.listing_error = str(e)
        return result

    def _remove_entry(self, category: str, canonical: str, given: str) -> None:
        try:
            self.listing.remove(category, canonical)
        except NotFoundError:
            # Entries written by hand may use a different form of the same src
            if given == canonical:
                raise
            self.listing.remove(category, given)

    def images(self, category: Optional[str]) -> GalleryPage:
        category = self._require_category(category, "Category parameter is required")
        try:
            images = self.listing.read(category)
        except (StoreError, ListingFormatError) as e:
            logger.warning(f"Listing for {category} unavailable, serving fallback images: {e}")
            return GalleryPage(
                category=category,
                images=fallback_images(category),
                fallback=True,
                message="Gallery storage is unavailable; showing placeholder images",
            )
        return GalleryPage(category=category, images=images)


def build_gallery_service(settings, store: BackingStore, listing) -> GalleryService:
    return GalleryService(
        store,
        listing,
        prefix=settings.STORAGE_PREFIX,
        public_base_url=settings.PUBLIC_BASE_URL,
        allowed_types=tuple(settings.ALLOWED_UPLOAD_MIME_TYPES),
        max_upload_bytes=settings.MAX_UPLOAD_BYTES,
    )

