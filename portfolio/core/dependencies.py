"""Dependencies for FastAPI routes.

Store, listing and gallery service are built once in `main.py` and kept on
`app.state`; tests swap them there.
"""
from typing import Optional

from fastapi import Request

from portfolio.services.gallery_service import GalleryService


def get_gallery_service(request: Request) -> GalleryService:
    return request.app.state.gallery


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)
