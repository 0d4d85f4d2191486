"""
Build a listing document from a directory of images.

Usage (from project root):
    python -m scripts.generate_listing DIRECTORY --category wildlife [--format json|page] [--out FILE]

Each image's src is {PUBLIC_BASE_URL}/{STORAGE_PREFIX}/{category}/{filename};
dimensions are read from the file. Unreadable images are skipped.
"""
import argparse
import os
import sys

from portfolio.core.categories import CATEGORIES
from portfolio.core.settings import settings
from portfolio.services.image_meta import dimensions_from_bytes, is_image_name
from portfolio.services.image_schema import GalleryImage
from portfolio.services.listing_codec import get_codec
from portfolio.services.listing_sync import public_url


def collect(directory: str, category: str, base_url: str, prefix: str) -> list[GalleryImage]:
    images = []
    for name in sorted(os.listdir(directory)):
        if not is_image_name(name):
            continue
        with open(os.path.join(directory, name), "rb") as fh:
            dims = dimensions_from_bytes(fh.read())
        if dims is None:
            print(f"Skipping unreadable image {name}", file=sys.stderr)
            continue
        src = public_url(base_url, f"{prefix.strip('/')}/{category}/{name}")
        images.append(GalleryImage(src=src, width=dims[0], height=dims[1]))
    return images


def main():
    parser = argparse.ArgumentParser(description="Generate a gallery listing from a directory of images")
    parser.add_argument("directory")
    parser.add_argument("--category", required=True, choices=CATEGORIES)
    parser.add_argument("--format", choices=("json", "page"), default="json")
    parser.add_argument("--out", default=None, help="Output file (default: stdout)")
    args = parser.parse_args()

    if not os.path.isdir(args.directory):
        parser.error(f"Directory does not exist: {args.directory}")

    images = collect(args.directory, args.category, settings.PUBLIC_BASE_URL, settings.STORAGE_PREFIX)
    text = get_codec(args.format).render(args.category, images)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as fh:
            fh.write(text)
        print(f"Wrote {len(images)} images to {args.out}", file=sys.stderr)
    else:
        sys.stdout.write(text)


if __name__ == "__main__":
    main()
