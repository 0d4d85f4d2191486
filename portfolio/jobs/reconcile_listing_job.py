"""Repair drift between a category's listing document and the stored images.

Handlers write the binary first and the listing second, so a failed second
phase leaves either an orphan binary (stored, not listed) or a stale entry
(listed, not stored). This job finds both:

* stale entries are always dropped from the listing;
* orphans are reported, adopted into the listing, or deleted, per `orphans`.

Open incidents for everything repaired are marked resolved.
"""
from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from portfolio.core.errors import NotFoundError, ValidationError
from portfolio.services.gallery_service import GalleryService
from portfolio.services.image_meta import image_dimensions, is_image_name
from portfolio.services.image_schema import GalleryImage
from portfolio.services.incident_log import resolve_incidents
from portfolio.services.listing_sync import public_url

logger = logging.getLogger(__name__)

ORPHAN_POLICIES = ("report", "adopt", "delete")


@dataclass
class ReconcileReport:
    category: str
    stale_removed: List[str] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)
    adopted: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    foreign: List[str] = field(default_factory=list)
    incidents_resolved: int = 0

    def as_dict(self) -> dict:
        return {
            "category": self.category,
            "stale_removed": self.stale_removed,
            "orphans": self.orphans,
            "adopted": self.adopted,
            "deleted": self.deleted,
            "foreign": self.foreign,
            "incidents_resolved": self.incidents_resolved,
        }


def reconcile_category(
    gallery: GalleryService,
    category: str,
    orphans: str = "report",
    dry_run: bool = False,
    db: Optional[Session] = None,
) -> ReconcileReport:
    if orphans not in ORPHAN_POLICIES:
        raise ValueError(f"orphans must be one of {ORPHAN_POLICIES}")
    report = ReconcileReport(category=category)
    listing = gallery.listing
    if getattr(listing, "strategy", "") != "document":
        # A live listing is the store listing; nothing can drift
        return report

    store = gallery.store
    stored = {
        obj.key
        for obj in store.list(gallery.key_for(category, "").rstrip("/"))
        if is_image_name(posixpath.basename(obj.key))
    }
    listed_keys = set()
    for img in listing.read(category):
        try:
            key = gallery.key_for_src(img.src, category)
        except ValidationError:
            # Entry points somewhere this store does not manage; leave it alone
            report.foreign.append(img.src)
            continue
        listed_keys.add(key)
        if key not in stored:
            report.stale_removed.append(img.src)

    report.orphans = sorted(stored - listed_keys)
    if dry_run:
        return report

    for src in report.stale_removed:
        try:
            listing.remove(category, src)
        except NotFoundError:
            pass
        logger.info(f"Removed stale {category} entry {src}")

    for key in report.orphans:
        src = public_url(gallery.public_base_url, key)
        if orphans == "adopt":
            blob = store.get(key)
            width, height = image_dimensions(blob.data, posixpath.basename(key))
            listing.add(category, GalleryImage(src=src, width=width, height=height))
            report.adopted.append(src)
            logger.info(f"Adopted orphan {key} into the {category} listing")
        elif orphans == "delete":
            try:
                store.delete(key)
            except NotFoundError:
                pass
            report.deleted.append(src)
            logger.info(f"Deleted orphan {key}")

    if db is not None:
        repaired = report.stale_removed + report.adopted + report.deleted
        report.incidents_resolved = resolve_incidents(db, category, repaired)
    return report
