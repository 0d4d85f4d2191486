"""
Copy a local portfolio tree into the configured backing store.

Usage (from project root):
    python -m scripts.migrate_to_store [--source public/static/portfolio] [--list]

Expects one sub-directory per category under --source. Each image is uploaded
to portfolio/{category}/{filename}; with --list it is also added to the
category listing. A JSON log of the run is written to the working directory.
"""
import argparse
import json
import mimetypes
import os
import posixpath
from datetime import datetime, timezone

from dotenv import load_dotenv

from portfolio.core.categories import CATEGORIES
from portfolio.core.errors import PortfolioError
from portfolio.core.logging_utils import configure_logging
from portfolio.core.settings import settings
from portfolio.services.backing_store import build_store
from portfolio.services.gallery_service import build_gallery_service
from portfolio.services.image_meta import image_dimensions, is_image_name
from portfolio.services.image_schema import GalleryImage
from portfolio.services.listing_sync import build_listing, public_url


def migrate_category(gallery, source: str, category: str, add_to_listing: bool) -> dict:
    category_dir = os.path.join(source, category)
    if not os.path.isdir(category_dir):
        print(f"Category directory {category_dir} does not exist. Skipping.")
        return {"category": category, "processed": 0, "successes": 0, "failures": 0, "files": []}

    names = sorted(n for n in os.listdir(category_dir) if is_image_name(n))
    print(f"Found {len(names)} images in {category}")
    files = []
    for name in names:
        key = gallery.key_for(category, name)
        try:
            with open(os.path.join(category_dir, name), "rb") as fh:
                data = fh.read()
            content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
            gallery.store.put(data, key, content_type=content_type)
            src = public_url(gallery.public_base_url, key)
            if add_to_listing:
                width, height = image_dimensions(data, name)
                gallery.listing.add(category, GalleryImage(src=src, width=width, height=height))
            files.append({"success": True, "fileName": name, "src": src})
            print(f"Uploaded {name} -> {key}")
        except (OSError, PortfolioError) as e:
            files.append({"success": False, "fileName": name, "error": str(e)})
            print(f"Failed {name}: {e}")
    successes = sum(1 for f in files if f["success"])
    return {
        "category": category,
        "processed": len(names),
        "successes": successes,
        "failures": len(files) - successes,
        "files": files,
    }


def main():
    parser = argparse.ArgumentParser(description="Upload a local portfolio tree to the backing store")
    parser.add_argument("--source", default=os.path.join("public", "static", "portfolio"), help="Directory holding one folder per category")
    parser.add_argument("--category", action="append", choices=CATEGORIES, help="Category to migrate (repeatable)")
    parser.add_argument("--list", action="store_true", dest="add_to_listing", help="Also add each image to the listing")
    args = parser.parse_args()

    load_dotenv()
    configure_logging(settings)

    store = build_store(settings)
    listing_store = build_store(settings, root=settings.LISTING_ROOT)
    gallery = build_gallery_service(settings, store, build_listing(settings, store, listing_store))
    try:
        results = [
            migrate_category(gallery, args.source, category, args.add_to_listing)
            for category in args.category or CATEGORIES
        ]
    finally:
        store.close()
        listing_store.close()

    processed = sum(r["processed"] for r in results)
    successes = sum(r["successes"] for r in results)
    for r in results:
        print(f"{r['category']}: {r['successes']}/{r['processed']} succeeded")
    rate = (successes / processed * 100) if processed else 0
    print(f"Total processed: {processed}, failures: {processed - successes}, success rate: {rate:.2f}%")

    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    log_path = os.path.join(os.getcwd(), f"migration-log-{stamp}.json")
    with open(log_path, "w", encoding="utf-8") as fh:
        json.dump(results, fh, indent=2)
    print(f"Detailed log written to: {log_path}")


if __name__ == "__main__":
    main()
