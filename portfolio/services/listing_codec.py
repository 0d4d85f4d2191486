"""Listing document formats.

``json`` is the structured document read and written wholesale. ``page`` is
the legacy format: a page source file holding one
``const images = [ {src: "...", width: N, height: N}, ... ];`` expression
that is spliced in place so the rest of the file is left untouched.

Both codecs keep the listing most-recent-first: new entries go to the head.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from portfolio.core.errors import ListingFormatError, NotFoundError
from portfolio.services.image_schema import GalleryImage


class JsonListingCodec:
    name = "json"
    content_type = "application/json"

    def empty(self, category: str) -> str:
        return self.render(category, [])

    def render(self, category: str, images: List[GalleryImage]) -> str:
        doc = {
            "category": category,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "images": [img.as_dict() for img in images],
        }
        return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"

    def parse(self, text: str) -> List[GalleryImage]:
        try:
            doc = json.loads(text or "{}")
        except json.JSONDecodeError as e:
            raise ListingFormatError(f"Listing document is not valid JSON: {e}")
        raw = doc.get("images", []) if isinstance(doc, dict) else doc
        if not isinstance(raw, list):
            raise ListingFormatError("Listing document has no images array")
        try:
            return [GalleryImage(**item) for item in raw]
        except (TypeError, PydanticValidationError) as e:
            raise ListingFormatError(f"Listing document has an invalid entry: {e}")

    def add(self, text: Optional[str], category: str, image: GalleryImage) -> str:
        images = self.parse(text) if text else []
        images = [image] + [img for img in images if img.src != image.src]
        return self.render(category, images)

    def remove(self, text: str, category: str, src: str) -> str:
        images = self.parse(text)
        kept = [img for img in images if img.src != src]
        if len(kept) == len(images):
            raise NotFoundError(f"Image not in {category} listing: {src}")
        return self.render(category, kept)


# Quoted string literal in either quote style, escapes allowed
_STR = r"\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'"
# Opening token of the listing expression and the whole expression; the body
# may hold `]` only inside string literals
LISTING_OPEN = "const images = ["
_LISTING_RE = re.compile(r"const images = \[(?P<body>(?:[^\]\"']|" + _STR + r")*)\]\s*;")
# One object literal, braces inside strings ignored
_ENTRY_RE = re.compile(r"\{(?:[^{}\"']|" + _STR + r")*\}")
# `key: value` inside an entry; keys bare or quoted, in any order
_FIELD_RE = re.compile(
    r"(?P<key>[A-Za-z_$][\w$]*|" + _STR + r")\s*:\s*(?P<value>" + _STR + r"|-?\d+)"
)
_REQUIRED_KEYS = ("src", "width", "height")


def _decode_literal(literal: str) -> str:
    if literal.startswith("'"):
        inner = literal[1:-1].replace('\\"', '"').replace('"', '\\"').replace("\\'", "'")
        literal = f'"{inner}"'
    try:
        return json.loads(literal)
    except json.JSONDecodeError as e:
        raise ListingFormatError(f"Bad string literal in page listing: {literal[:80]}: {e}")


def _parse_entry(literal: str) -> GalleryImage:
    fields = {}
    for f in _FIELD_RE.finditer(literal):
        key = f.group("key")
        if key[0] in "\"'":
            key = _decode_literal(key)
        fields[key] = f.group("value")
    missing = [k for k in _REQUIRED_KEYS if k not in fields]
    if missing:
        raise ListingFormatError(f"Page listing entry is missing {', '.join(missing)}: {literal[:120]}")
    src = fields["src"]
    if src[0] not in "\"'":
        raise ListingFormatError(f"Page listing entry has a non-string src: {literal[:120]}")
    try:
        return GalleryImage(src=_decode_literal(src), width=int(fields["width"]), height=int(fields["height"]))
    except (ValueError, PydanticValidationError) as e:
        raise ListingFormatError(f"Page listing has an invalid entry: {e}")


def _render_entry(image: GalleryImage, indent: str = "    ") -> str:
    inner = indent + "  "
    return (
        f"{indent}{{\n"
        f"{inner}src: {json.dumps(image.src, ensure_ascii=False)},\n"
        f"{inner}width: {image.width},\n"
        f"{inner}height: {image.height}\n"
        f"{indent}}}"
    )


def normalize_listing_body(body: str) -> str:
    """Drop separator debris left behind by a splice."""
    body = re.sub(r",(\s*,)+", ",", body)
    body = re.sub(r"^\s*,", "", body)
    body = re.sub(r",\s*$", "", body)
    return body.strip()


class PageListingCodec:
    name = "page"
    content_type = "text/plain; charset=utf-8"

    def empty(self, category: str) -> str:
        return f"// {category} gallery listing\n{LISTING_OPEN}\n];\n"

    def _locate(self, text: str) -> re.Match:
        m = _LISTING_RE.search(text or "")
        if not m:
            raise ListingFormatError("Couldn't find images array in page file")
        return m

    def parse(self, text: str) -> List[GalleryImage]:
        body = self._locate(text).group("body")
        return [_parse_entry(e.group(0)) for e in _ENTRY_RE.finditer(body)]

    def render(self, category: str, images: List[GalleryImage]) -> str:
        return self._splice(self.empty(category), ",\n".join(_render_entry(i) for i in images))

    def _splice(self, text: str, body: str) -> str:
        m = self._locate(text)
        body = normalize_listing_body(body)
        new_body = f"\n    {body}\n" if body else "\n"
        return text[: m.start("body")] + new_body + text[m.end("body") :]

    def _without(self, body: str, src: str) -> tuple[str, bool]:
        # Compare decoded values so quotes/backslashes in src need no regex escaping
        for e in _ENTRY_RE.finditer(body):
            if _parse_entry(e.group(0)).src == src:
                return body[: e.start()] + body[e.end() :], True
        return body, False

    def add(self, text: Optional[str], category: str, image: GalleryImage) -> str:
        text = text if text else self.empty(category)
        body, _ = self._without(self._locate(text).group("body"), image.src)
        rest = normalize_listing_body(body)
        new_body = _render_entry(image) + (",\n    " + rest if rest else "")
        return self._splice(text, new_body)

    def remove(self, text: str, category: str, src: str) -> str:
        body, found = self._without(self._locate(text).group("body"), src)
        if not found:
            raise NotFoundError(f"Image not in {category} listing: {src}")
        return self._splice(text, body)


def get_codec(name: str):
    name = (name or "json").lower()
    if name == "json":
        return JsonListingCodec()
    if name == "page":
        return PageListingCodec()
    raise ValueError(f"Unknown LISTING_FORMAT: {name}")
