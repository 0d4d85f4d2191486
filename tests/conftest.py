import io
import os
import tempfile

# Must be set before db/main are imported: in-memory SQLite, no log file, and
# a throwaway directory for the store the app builds at import time.
os.environ.setdefault("TEST_SQLITE", "1")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("LOCAL_STORAGE_ROOT", tempfile.mkdtemp(prefix="portfolio-test-"))

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from db import SessionLocal, init_db
from portfolio.core.settings import Settings
from portfolio.services.gallery_service import GalleryService
from portfolio.services.listing_sync import DocumentListing
from portfolio.services.local_storage import LocalStorage


def make_jpeg(width: int = 40, height: int = 30, color=(200, 80, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def db_session():
    """Session shared with request handlers; every table is emptied at teardown.

    SAVEPOINT-based rollback is unreliable on pysqlite, so tests commit for real
    against the in-memory database and clean up afterwards.
    """
    init_db()
    from portfolio.models.base import Base

    session = SessionLocal()
    import db as dbmod

    dbmod._TEST_SESSION = session
    try:
        yield session
    finally:
        dbmod._TEST_SESSION = None
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture
def store_dir(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def app_settings(store_dir):
    return Settings(
        STORAGE_BACKEND="local",
        LOCAL_STORAGE_ROOT=str(store_dir),
        LISTING_STRATEGY="document",
        LISTING_FORMAT="json",
        LISTING_MAX_RETRIES=2,
        LISTING_RETRY_BACKOFF_SECONDS=0,
        LOG_FILE="",
    )


@pytest.fixture
def client(db_session, app_settings):
    # Imported here so the environment above is in place before startup code runs
    from main import app, configure_storage
    from portfolio.core.settings import settings

    configure_storage(app, app_settings)
    try:
        yield TestClient(app)
    finally:
        configure_storage(app, settings)


@pytest.fixture
def gallery(tmp_path):
    store = LocalStorage(str(tmp_path / "gallery"))
    listing = DocumentListing(store, codec_name="json", backoff_seconds=0, sleep=lambda _: None)
    return GalleryService(store, listing, prefix="portfolio", public_base_url="/static")


@pytest.fixture
def jpeg_factory():
    return make_jpeg
