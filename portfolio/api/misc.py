"""Health and deploy-hook endpoints."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from portfolio.core.dependencies import get_request_id
from portfolio.core.settings import settings
from portfolio.services.deploy_hook import trigger_deploy

router = APIRouter()
audit = logging.getLogger("audit")


@router.get("/health", response_class=JSONResponse)
def health(request: Request):
    store = getattr(request.app.state, "store", None)
    listing = getattr(request.app.state, "listing", None)
    return JSONResponse(
        {
            "status": "ok",
            "store": getattr(store, "name", None),
            "listing": getattr(listing, "strategy", None),
        }
    )


@router.get("/health.txt", response_class=PlainTextResponse)
def health_txt():
    return PlainTextResponse("OK")


@router.post("/webhook/trigger-deploy", response_class=JSONResponse)
async def webhook_trigger_deploy(request: Request):
    await trigger_deploy(settings.DEPLOY_HOOK_URL, timeout=settings.HTTP_TIMEOUT_SECONDS)
    audit.info("deploy.triggered", extra={"request_id": get_request_id(request)})
    return JSONResponse(
        {
            "success": True,
            "message": "Deployment triggered successfully. Your changes will be live in a few minutes.",
        }
    )
