"""Upload endpoint."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from db import get_db
from portfolio.core.dependencies import get_gallery_service, get_request_id
from portfolio.models.incident import STORED_NOT_LISTED
from portfolio.services.gallery_service import GalleryService
from portfolio.services.incident_log import record_incident

router = APIRouter()
audit = logging.getLogger("audit")


@router.post("/upload", response_class=JSONResponse)
async def upload_image(
    request: Request,
    file: Optional[UploadFile] = File(None),
    category: Optional[str] = Form(None),
    gallery: GalleryService = Depends(get_gallery_service),
    db: Session = Depends(get_db),
):
    request_id = get_request_id(request)
    data = await file.read() if file is not None else None
    filename = file.filename if file is not None else None
    content_type = file.content_type if file is not None else None
    audit.info(
        "image.upload.received",
        extra={
            "category": category,
            "filename": filename,
            "ctype": content_type,
            "size": len(data) if data else 0,
            "request_id": request_id,
        },
    )

    # Store and listing calls block on network/disk I/O
    result = await run_in_threadpool(gallery.upload, data, filename, content_type, category)

    if result.partial:
        record_incident(
            db,
            STORED_NOT_LISTED,
            category,
            result.file_path,
            store_key=result.key,
            message=result.listing_error,
            request_id=request_id,
        )
        return JSONResponse(
            {
                "success": False,
                "partial": True,
                "message": result.message,
                "filePath": result.file_path,
            },
            status_code=207,
        )

    audit.info(
        "image.upload",
        extra={"category": category, "key": result.key, "request_id": request_id},
    )
    return JSONResponse(
        {
            "success": True,
            "message": result.message,
            "filePath": result.file_path,
            "image": result.image.as_dict(),
        }
    )
