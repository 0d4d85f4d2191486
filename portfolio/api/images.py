"""Gallery listing and delete endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from db import get_db
from portfolio.core.categories import CATEGORIES
from portfolio.core.dependencies import get_gallery_service, get_request_id
from portfolio.models.incident import DELETED_STILL_LISTED
from portfolio.services.gallery_service import GalleryService
from portfolio.services.image_schema import DeleteImageRequest
from portfolio.services.incident_log import incident_to_dict, list_incidents, record_incident

router = APIRouter()
audit = logging.getLogger("audit")


@router.get("/images", response_class=JSONResponse)
def get_images(
    category: Optional[str] = None,
    gallery: GalleryService = Depends(get_gallery_service),
):
    page = gallery.images(category)
    body = {
        "success": True,
        "images": [img.as_dict() for img in page.images],
    }
    if page.fallback:
        body["fallback"] = True
        body["message"] = page.message
    return JSONResponse(body)


@router.delete("/images", response_class=JSONResponse)
def delete_image(
    request: Request,
    payload: DeleteImageRequest,
    gallery: GalleryService = Depends(get_gallery_service),
    db: Session = Depends(get_db),
):
    result = gallery.delete(payload.src, payload.category)
    request_id = get_request_id(request)
    audit.info(
        "image.delete",
        extra={
            "category": payload.category,
            "key": result.key,
            "object_deleted": result.object_deleted,
            "entry_removed": result.entry_removed,
            "partial": result.partial,
            "request_id": request_id,
        },
    )
    if result.partial:
        record_incident(
            db,
            DELETED_STILL_LISTED,
            payload.category,
            result.src,
            store_key=result.key,
            message=result.listing_error,
            request_id=request_id,
        )
        return JSONResponse(
            {"success": False, "partial": True, "message": result.message},
            status_code=207,
        )
    return JSONResponse({"success": True, "message": result.message})


@router.get("/categories", response_class=JSONResponse)
def get_categories():
    return JSONResponse(list(CATEGORIES))


@router.get("/incidents", response_class=JSONResponse)
def get_incidents(
    resolved: Optional[bool] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    rows = list_incidents(db, resolved=resolved, limit=limit)
    return JSONResponse({"success": True, "incidents": [incident_to_dict(r) for r in rows]})
