"""
Repair drift between listing documents and stored images.

Usage (from project root):
    python -m scripts.reconcile_listings [--category nature] [--orphans report|adopt|delete] [--dry-run]

Without --category every category is processed. Uses the storage configured in
the environment (.env), the same as the API.
"""
import argparse
import json

from dotenv import load_dotenv

from db import get_db, init_db
from portfolio.core.categories import CATEGORIES
from portfolio.core.logging_utils import configure_logging
from portfolio.core.settings import settings
from portfolio.jobs.reconcile_listing_job import ORPHAN_POLICIES, reconcile_category
from portfolio.services.backing_store import build_store
from portfolio.services.gallery_service import build_gallery_service
from portfolio.services.listing_sync import build_listing


def main():
    parser = argparse.ArgumentParser(description="Reconcile gallery listings with the backing store")
    parser.add_argument("--category", action="append", choices=CATEGORIES, help="Category to process (repeatable)")
    parser.add_argument("--orphans", choices=ORPHAN_POLICIES, default="report", help="What to do with unlisted images")
    parser.add_argument("--dry-run", action="store_true", help="Report only; change nothing")
    args = parser.parse_args()

    load_dotenv()
    configure_logging(settings)
    init_db()

    store = build_store(settings)
    listing_store = build_store(settings, root=settings.LISTING_ROOT)
    gallery = build_gallery_service(settings, store, build_listing(settings, store, listing_store))

    db_gen = get_db()
    db = next(db_gen)
    try:
        for category in args.category or CATEGORIES:
            report = reconcile_category(
                gallery,
                category,
                orphans=args.orphans,
                dry_run=args.dry_run,
                db=None if args.dry_run else db,
            )
            print(json.dumps(report.as_dict(), indent=2))
    finally:
        db_gen.close()
        store.close()
        listing_store.close()


if __name__ == "__main__":
    main()
