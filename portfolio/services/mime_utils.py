"""MIME detection helpers.

Uses `magic` if available (provided by python-magic or python-magic-bin),
falls back to the declared content type or application/octet-stream.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def sniff_mime(data: bytes, fallback_content_type: Optional[str] = None) -> str:
    try:
        import magic  # type: ignore

        detected = magic.from_buffer(data[:4096], mime=True)
        if isinstance(detected, str) and detected:
            return detected
    except (ImportError, OSError) as e:
        # libmagic missing on the host; trust the declared type
        logger.debug(f"MIME sniffing unavailable: {e}")
    return fallback_content_type or "application/octet-stream"


def is_allowed_image(
    data: bytes,
    declared_type: Optional[str],
    allowed_types: Tuple[str, ...],
) -> tuple[bool, str]:
    """Return (allowed, mime).

    The declared type must be in `allowed_types` and the sniffed type must be
    an image type, so a renamed text file is refused even with an image header.
    """
    declared = (declared_type or "").split(";")[0].strip().lower()
    if declared not in allowed_types:
        return False, declared
    mime = sniff_mime(data, declared)
    return mime.startswith("image/"), mime
