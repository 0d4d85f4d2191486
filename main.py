import logging
import os
import time
import traceback
import uuid
from typing import Optional

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi import HTTPException as FastAPIHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sentry_sdk.integrations.starlette import StarletteIntegration
from sqlalchemy.exc import SQLAlchemyError

from db import get_db, init_db
from portfolio.api import images, misc, uploads
from portfolio.core.errors import PortfolioError
from portfolio.core.logging_utils import configure_logging
from portfolio.core.settings import Settings, settings
from portfolio.models import AppErrorLog
from portfolio.services.backing_store import build_store
from portfolio.services.gallery_service import build_gallery_service
from portfolio.services.listing_sync import build_listing
from portfolio.services.local_storage import LocalStorage

load_dotenv()


app = FastAPI(title="Photo Portfolio API")

# Configure logging (console + rotating file; JSON by default)
configure_logging(settings)
logger = logging.getLogger("app")

init_db()


def configure_storage(app: FastAPI, cfg: Settings) -> None:
    """Build store, listing and gallery service for `cfg` and hang them on app.state.

    A remote store that cannot be constructed falls back to the local
    filesystem so the gallery keeps working in development.
    """
    try:
        store = build_store(cfg)
        listing_store = build_store(cfg, root=cfg.LISTING_ROOT)
    except (ValueError, PortfolioError) as e:
        logger.warning(f"Storage initialization failed; falling back to local filesystem: {e}")
        store = LocalStorage(cfg.LOCAL_STORAGE_ROOT, root=cfg.STORAGE_ROOT)
        listing_store = LocalStorage(cfg.LOCAL_STORAGE_ROOT, root=cfg.LISTING_ROOT)
    listing = build_listing(cfg, store, listing_store)

    for previous in ("store", "listing_store"):
        old = getattr(app.state, previous, None)
        if old is not None:
            old.close()
    app.state.store = store
    app.state.listing_store = listing_store
    app.state.listing = listing
    app.state.gallery = build_gallery_service(cfg, store, listing)
    logger.info(
        "storage.configured",
        extra={"store": store.name, "listing": listing.strategy, "format": cfg.LISTING_FORMAT},
    )


configure_storage(app, settings)

# Initialize Sentry if DSN provided
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[StarletteIntegration()],
        traces_sample_rate=float(settings.SENTRY_TRACES_SAMPLE_RATE or 0.0),
        send_default_pii=False,
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=86400,
)

# Serve local-store images under the public base path (development only).
# Only the image prefix is mounted; listing documents stay private.
if isinstance(app.state.store, LocalStorage) and settings.PUBLIC_BASE_URL.startswith("/"):
    _image_prefix = settings.STORAGE_PREFIX.strip("/")
    _mount_path = settings.PUBLIC_BASE_URL.rstrip("/") + "/" + _image_prefix
    static_dir = os.path.join(
        app.state.store.base_dir,
        *filter(None, settings.STORAGE_ROOT.split("/")),
        *filter(None, _image_prefix.split("/")),
    )
    os.makedirs(static_dir, exist_ok=True)
    app.mount(
        _mount_path,
        StaticFiles(directory=static_dir),
        name="static",
    )

app.include_router(images.router)
app.include_router(uploads.router)
app.include_router(misc.router)


# Request logging middleware with request id
@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    start = time.perf_counter()
    duration_ms: Optional[int] = None
    # Stash request_id for downstream handlers
    request.state.request_id = request_id

    extra_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }
    logger.info("request.start", extra=extra_ctx)
    try:
        response = await call_next(request)
    except Exception:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.exception("request.error", extra={**extra_ctx, "duration_ms": duration_ms})
        # Re-raise to be handled by the 500 handler
        raise

    duration_ms = int((time.perf_counter() - start) * 1000)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request.end",
        extra={**extra_ctx, "status_code": response.status_code, "duration_ms": duration_ms},
    )
    return response


def _log_error(request: Request, status: int, message: str, stack: Optional[str] = None) -> None:
    """Best-effort write of an error response to AppErrorLog."""
    request_id = getattr(request.state, "request_id", None)
    db_gen = get_db()
    db = next(db_gen)
    try:
        db.add(
            AppErrorLog(
                RequestID=str(request_id) if request_id else None,
                Path=str(request.url.path),
                Method=request.method,
                StatusCode=int(status),
                ClientIP=request.client.host if request.client else None,
                UserAgent=request.headers.get("user-agent"),
                Message=message,
                StackTrace=stack,
            )
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Failed to write AppErrorLog row", exc_info=True)
    finally:
        db_gen.close()


def _error_response(request: Request, status: int, body: dict) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    resp = JSONResponse(body, status_code=status)
    if request_id:
        resp.headers["X-Request-ID"] = str(request_id)
    return resp


@app.exception_handler(PortfolioError)
async def portfolio_error_handler(request: Request, exc: PortfolioError):
    status = exc.status_code
    log = logger.warning if status < 500 else logger.error
    log(
        "request.failed",
        extra={
            "error": type(exc).__name__,
            "message_text": exc.message,
            "status_code": status,
            "request_id": getattr(request.state, "request_id", None),
        },
    )
    _log_error(request, status, exc.message)
    body = {"success": False, "message": exc.message}
    if exc.details:
        body["details"] = exc.details
    return _error_response(request, status, body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid request: {field} {first.get('msg', '')}".strip()
    _log_error(request, 400, message)
    return _error_response(request, 400, {"success": False, "message": message})


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    return _error_response(request, 404, {"success": False, "message": "Not found"})


@app.exception_handler(FastAPIHTTPException)
async def http_exception_handler(request: Request, exc: FastAPIHTTPException):
    """Log HTTPException (>=400) to DB, then return the JSON error shape."""
    status = getattr(exc, "status_code", 500) or 500
    if status >= 400:
        _log_error(request, status, str(getattr(exc, "detail", "HTTP error")))
    return _error_response(request, status, {"success": False, "message": str(exc.detail)})


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    _log_error(
        request,
        500,
        str(exc),
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )
    return _error_response(
        request,
        500,
        {
            "success": False,
            "message": "Internal server error",
            "request_id": getattr(request.state, "request_id", None),
        },
    )
