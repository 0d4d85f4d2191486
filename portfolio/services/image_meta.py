import io
import re
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from portfolio.services.image_schema import DEFAULT_HEIGHT, DEFAULT_WIDTH

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")

# e.g. "harbour-1200x800.jpg"
_DIMENSIONS_HINT = re.compile(r"(\d+)x(\d+)")


def dimensions_from_name(name: str) -> Optional[Tuple[int, int]]:
    m = _DIMENSIONS_HINT.search(name or "")
    if not m:
        return None
    w, h = int(m.group(1)), int(m.group(2))
    if w <= 0 or h <= 0:
        return None
    return w, h


def dimensions_from_bytes(data: bytes) -> Optional[Tuple[int, int]]:
    """Pixel size as displayed (EXIF orientation applied), or None if unreadable."""
    try:
        with Image.open(io.BytesIO(data)) as im:
            im = ImageOps.exif_transpose(im)
            w, h = int(im.width), int(im.height)
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    if w <= 0 or h <= 0:
        return None
    return w, h


def image_dimensions(data: Optional[bytes], name: str = "") -> Tuple[int, int]:
    """Best-effort dimensions: image header, then filename hint, then defaults."""
    if data:
        dims = dimensions_from_bytes(data)
        if dims:
            return dims
    return dimensions_from_name(name) or (DEFAULT_WIDTH, DEFAULT_HEIGHT)


def is_image_name(name: str) -> bool:
    return (name or "").lower().endswith(IMAGE_EXTENSIONS)
