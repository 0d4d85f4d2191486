import pytest

from portfolio.core.errors import ConflictError, NotFoundError
from portfolio.services.image_schema import GalleryImage
from portfolio.services.listing_sync import DocumentListing, LiveListing, build_listing
from portfolio.services.local_storage import LocalStorage

A = GalleryImage(src="/static/portfolio/nature/a.jpg", width=2048, height=1365)


@pytest.fixture
def store(tmp_path):
    return LocalStorage(str(tmp_path))


def test_document_listing_add_and_remove(store):
    listing = DocumentListing(store)
    assert listing.read("nature") == []

    listing.add("nature", A)
    assert listing.read("nature") == [A]
    assert store.exists("listings/nature.json")

    listing.remove("nature", A.src)
    assert listing.read("nature") == []


def test_document_listing_categories_are_separate(store):
    listing = DocumentListing(store)
    listing.add("nature", A)
    assert listing.read("travel") == []


def test_remove_without_document_is_not_found(store):
    with pytest.raises(NotFoundError):
        DocumentListing(store).remove("nature", A.src)


def test_page_format_listing(store):
    listing = DocumentListing(store, codec_name="page", path_template="src/app/photo/{category}/page.tsx")
    listing.add("wildlife", A)
    raw = store.get("src/app/photo/wildlife/page.tsx").data.decode("utf-8")
    assert "const images = [" in raw
    assert listing.read("wildlife") == [A]


class RacingStore(LocalStorage):
    """Lets another writer slip in before the first `conflicts` conditional puts."""

    def __init__(self, base_dir, conflicts):
        super().__init__(base_dir)
        self.conflicts = conflicts
        self.puts = 0

    def put(self, data, path, content_type="application/octet-stream", if_match=None, if_none_match=False):
        self.puts += 1
        if self.puts <= self.conflicts:
            raise ConflictError("concurrent write")
        return super().put(data, path, content_type, if_match, if_none_match)


def test_conflict_is_retried_with_backoff(tmp_path):
    store = RacingStore(str(tmp_path), conflicts=2)
    delays = []
    listing = DocumentListing(store, max_retries=3, backoff_seconds=0.1, sleep=delays.append)

    listing.add("nature", A)

    assert listing.read("nature") == [A]
    assert store.puts == 3
    assert delays == pytest.approx([0.1, 0.2])


def test_conflict_gives_up_after_max_retries(tmp_path):
    store = RacingStore(str(tmp_path), conflicts=10)
    listing = DocumentListing(store, max_retries=2, backoff_seconds=0, sleep=lambda _: None)
    with pytest.raises(ConflictError):
        listing.add("nature", A)
    assert store.puts == 3


def test_concurrent_update_between_read_and_write_is_detected(store):
    listing = DocumentListing(store)
    listing.add("nature", A)
    stale_version = store.get("listings/nature.json").version

    # Another instance rewrites the document
    DocumentListing(store).add("nature", GalleryImage(src="/static/portfolio/nature/b.jpg"))

    with pytest.raises(ConflictError):
        store.put(b"{}", "listings/nature.json", if_match=stale_version)


def test_live_listing_reads_store_prefix(store, jpeg_bytes):
    store.put(jpeg_bytes, "portfolio/nature/b-1200x800.jpg")
    store.put(jpeg_bytes, "portfolio/nature/a.jpg")
    store.put(b"notes", "portfolio/nature/readme.txt")
    store.put(jpeg_bytes, "portfolio/travel/c.jpg")

    listing = LiveListing(store, prefix="portfolio", public_base_url="https://cdn.example.com")
    assert listing.read("nature") == [
        GalleryImage(src="https://cdn.example.com/portfolio/nature/a.jpg", width=1000, height=800),
        GalleryImage(src="https://cdn.example.com/portfolio/nature/b-1200x800.jpg", width=1200, height=800),
    ]
    # Nothing to synchronize
    listing.add("nature", A)
    listing.remove("nature", A.src)
    assert len(listing.read("nature")) == 2


def test_build_listing_from_settings(app_settings, store):
    assert isinstance(build_listing(app_settings, store), DocumentListing)
    live = app_settings.model_copy(update={"LISTING_STRATEGY": "live"})
    assert isinstance(build_listing(live, store), LiveListing)
    bogus = app_settings.model_copy(update={"LISTING_STRATEGY": "database"})
    with pytest.raises(ValueError):
        build_listing(bogus, store)
